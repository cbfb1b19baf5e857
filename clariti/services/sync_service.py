"""
Sync orchestrator - fetch, classify, normalize and upsert one source at a time
"""
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clariti.config import get_settings
from clariti.exceptions import AuthExpiredError, IntegrationNotConnectedError, ProviderError
from clariti.models.integration import PROVIDER_SOURCES, Integration, IntegrationProvider, provider_for_source
from clariti.models.task import TaskSource
from clariti.models.user import User
from clariti.normalizers import Normalizer, get_normalizer
from clariti.providers.base import BaseProviderClient
from clariti.providers.canvas import CanvasClient
from clariti.providers.gmail import GmailClient
from clariti.providers.google_auth import refresh_google_token, token_expired
from clariti.providers.google_calendar import GoogleCalendarClient
from clariti.providers.records import RawItem
from clariti.providers.slack import SlackClient
from clariti.schemas import SyncAllResponse, SyncState, SyncSummary
from clariti.services.content_classifier import ContentClassifier
from clariti.services.task_store import UpsertOutcome, purge_source, upsert_task
from clariti.utils.helpers import utcnow
from clariti.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)

ClientFactory = Callable[[TaskSource, Integration], BaseProviderClient]
TokenRefresher = Callable[[Integration], Awaitable[Integration]]


def default_client_factory(source: TaskSource, integration: Integration) -> BaseProviderClient:
    metadata = integration.integration_metadata or {}
    token = integration.access_token

    if source == TaskSource.CANVAS:
        return CanvasClient(token, base_url=metadata.get("canvasUrl"))
    if source == TaskSource.GMAIL:
        return GmailClient(token)
    if source == TaskSource.GOOGLE_CALENDAR:
        return GoogleCalendarClient(token)
    if source == TaskSource.SLACK:
        return SlackClient(token)
    raise ValueError(f"Unsupported source: {source}")


class SyncService:
    """
    Runs syncs for one user against the store.

    Items are processed sequentially; a failing item is logged and counted,
    never allowed to abort the rest of the batch.
    """

    def __init__(
        self,
        db: AsyncSession,
        classifier: Optional[ContentClassifier] = None,
        client_factory: Optional[ClientFactory] = None,
        token_refresher: Optional[TokenRefresher] = None,
        rebuild_sources: Optional[List[str]] = None,
    ):
        self.db = db
        self.classifier = classifier or ContentClassifier()
        self.client_factory = client_factory or default_client_factory
        self.token_refresher = token_refresher or refresh_google_token
        self.rebuild_sources = set(settings.REBUILD_SOURCES if rebuild_sources is None else rebuild_sources)

    async def get_integration(self, user_id: int, provider: IntegrationProvider) -> Integration:
        result = await self.db.execute(
            select(Integration).where(
                Integration.user_id == user_id,
                Integration.provider == provider,
            )
        )
        integration = result.scalar_one_or_none()
        if integration is None or not integration.is_connected or not integration.access_token:
            raise IntegrationNotConnectedError(provider.value)
        return integration

    async def _fetch(self, source: TaskSource, integration: Integration) -> List[RawItem]:
        async with self.client_factory(source, integration) as client:
            return await client.fetch_items()

    async def _fetch_with_refresh(self, source: TaskSource, integration: Integration) -> List[RawItem]:
        refreshed = False
        if integration.provider == IntegrationProvider.GOOGLE and token_expired(integration):
            await self.token_refresher(integration)
            await self.db.commit()
            refreshed = True

        try:
            return await self._fetch(source, integration)
        except AuthExpiredError:
            # A rejected token gets exactly one refresh attempt per sync
            if integration.provider != IntegrationProvider.GOOGLE or refreshed or not integration.refresh_token:
                raise
            logger.info(f"Google token rejected for user {integration.user_id}, refreshing")
            await self.token_refresher(integration)
            await self.db.commit()
            return await self._fetch(source, integration)

    async def _process_item(
        self,
        user_id: int,
        source: TaskSource,
        normalizer: Normalizer,
        raw: RawItem,
        summary: SyncSummary,
    ) -> List[UpsertOutcome]:
        classification = None
        template = normalizer.template_for(raw)
        if template is not None:
            classification = await self.classifier.classify(
                normalizer.excerpt(raw),
                template,
                context=normalizer.context(raw),
                fallback_important=normalizer.fallback_important(raw),
            )

        tasks = normalizer.normalize(raw, classification)

        summary.state = SyncState.UPSERTING
        outcomes = []
        for task in tasks:
            outcomes.append(await upsert_task(self.db, user_id, source, task))
        summary.state = SyncState.NORMALIZING
        return outcomes

    async def sync_source(self, user: User, source: TaskSource, rebuild: Optional[bool] = None) -> SyncSummary:
        """
        Sync one source for a user.

        Raises IntegrationNotConnectedError when the user has no usable
        credential; every upstream problem is reported in the summary instead.
        """
        source = TaskSource(source)
        provider = provider_for_source(source)
        integration = await self.get_integration(user.id, provider)

        if rebuild is None:
            rebuild = source.value in self.rebuild_sources

        summary = SyncSummary(provider=source.value, state=SyncState.FETCHING)
        logger.info(f"Syncing {source.value} for user {user.id} (rebuild={rebuild})")

        try:
            raw_items = await self._fetch_with_refresh(source, integration)
        except AuthExpiredError as e:
            logger.warning(f"{source.value} credential expired for user {user.id}: {e}")
            summary.state = SyncState.FAILED
            summary.success = False
            summary.auth_expired = True
            summary.error = str(e)
            summary.message = f"{source.value} authorization expired; reconnect required"
            return summary
        except ProviderError as e:
            logger.error(f"{source.value} fetch failed for user {user.id}: {e}")
            summary.state = SyncState.FAILED
            summary.success = False
            summary.error = str(e)
            summary.message = f"Failed to fetch {source.value} data"
            return summary

        # Purge only once the fetch succeeded, so an outage never empties the list
        if rebuild:
            summary.purged = await purge_source(self.db, user.id, source)
            logger.info(f"Rebuild: removed {summary.purged} {source.value} tasks for user {user.id}")

        summary.state = SyncState.NORMALIZING
        normalizer = get_normalizer(source)
        seen = set()

        for raw in raw_items:
            try:
                reason = normalizer.prefilter(raw)
                if reason is not None:
                    logger.debug(f"Skipped {normalizer.item_key(raw)}: {reason}")
                    outcomes = []
                else:
                    key = normalizer.item_key(raw)
                    if key in seen:
                        continue
                    seen.add(key)
                    # A failed flush rolls back this item only
                    async with self.db.begin_nested():
                        outcomes = await self._process_item(user.id, source, normalizer, raw, summary)
            except Exception as e:
                logger.error(f"Error processing {source.value} item: {e}")
                summary.failed += 1
                summary.state = SyncState.NORMALIZING
                continue

            summary.items_processed += 1
            if not outcomes:
                summary.filtered += 1
            for outcome in outcomes:
                if outcome == UpsertOutcome.CREATED:
                    summary.created += 1
                else:
                    summary.updated += 1

        summary.state = SyncState.SUMMARIZING
        integration.last_synced_at = utcnow()
        await self.db.commit()

        summary.message = (
            f"Synced {summary.item_count} {source.value} tasks "
            f"({summary.filtered} filtered, {summary.failed} failed)"
        )
        summary.state = SyncState.DONE
        logger.info(
            f"{source.value} sync for user {user.id}: processed={summary.items_processed} "
            f"created={summary.created} updated={summary.updated} filtered={summary.filtered} "
            f"failed={summary.failed} purged={summary.purged}"
        )
        return summary

    async def sync_all(self, user: User) -> SyncAllResponse:
        """Sync every connected integration in turn; failures stay per provider"""
        result = await self.db.execute(
            select(Integration)
            .where(Integration.user_id == user.id, Integration.is_connected.is_(True))
            .order_by(Integration.id)
        )
        integrations = result.scalars().all()

        results: List[Dict[str, Any]] = []
        for integration in integrations:
            for source in PROVIDER_SOURCES[integration.provider]:
                try:
                    summary = await self.sync_source(user, source)
                except IntegrationNotConnectedError as e:
                    summary = SyncSummary(
                        provider=source.value,
                        success=False,
                        state=SyncState.FAILED,
                        error=str(e),
                        message=f"{source.value} is not connected",
                    )
                results.append(summary.to_response())

        return SyncAllResponse(
            success=True,
            message="Sync completed for all integrations",
            results=results,
        )
