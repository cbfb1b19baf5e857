"""
Gmail REST client - searches recent academic/work mail and loads full messages
"""
import logging
from typing import List, Optional, Sequence

from clariti.config import get_settings
from clariti.exceptions import AuthExpiredError, ProviderError
from clariti.providers.base import BaseProviderClient
from clariti.providers.records import GmailRawMessage

settings = get_settings()
logger = logging.getLogger(__name__)

SEARCH_QUERIES = (
    "assignment OR homework OR project",
    'deadline OR "due date" OR "due by"',
    "exam OR quiz OR test",
    "presentation OR submit OR submission",
    "meeting OR interview OR appointment",
    '"action required" OR reminder',
    "grade OR feedback OR review",
)


class GmailClient(BaseProviderClient):
    provider = "gmail"

    def __init__(
        self,
        access_token: str,
        base_url: Optional[str] = None,
        queries: Sequence[str] = SEARCH_QUERIES,
        lookback_days: Optional[int] = None,
        max_results: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(access_token, base_url or settings.GMAIL_API_URL, **kwargs)
        self.queries = tuple(queries)
        self.lookback_days = lookback_days or settings.GMAIL_LOOKBACK_DAYS
        self.max_results = max_results or settings.GMAIL_MAX_RESULTS

    async def search(self, query: str) -> List[str]:
        data = await self._get_json(
            "/users/me/messages",
            params={
                "q": f"{query} newer_than:{self.lookback_days}d",
                "maxResults": self.max_results,
            },
        )
        return [m["id"] for m in data.get("messages") or [] if m.get("id")]

    async def get_message(self, message_id: str) -> GmailRawMessage:
        data = await self._get_json(f"/users/me/messages/{message_id}", params={"format": "full"})
        return GmailRawMessage(data=data)

    async def fetch_items(self) -> List[GmailRawMessage]:
        message_ids: List[str] = []
        seen = set()
        failures = 0
        last_error: Optional[ProviderError] = None

        for query in self.queries:
            try:
                ids = await self.search(query)
            except AuthExpiredError:
                raise
            except ProviderError as e:
                logger.warning(f"Gmail search failed for '{query}': {e}")
                failures += 1
                last_error = e
                continue
            for message_id in ids:
                # The same message often matches several queries
                if message_id not in seen:
                    seen.add(message_id)
                    message_ids.append(message_id)

        if self.queries and failures == len(self.queries) and last_error is not None:
            raise last_error

        messages: List[GmailRawMessage] = []
        for message_id in message_ids:
            try:
                messages.append(await self.get_message(message_id))
            except AuthExpiredError:
                raise
            except ProviderError as e:
                logger.error(f"Could not load Gmail message {message_id}: {e}")

        logger.info(f"Fetched {len(messages)} Gmail messages")
        return messages
