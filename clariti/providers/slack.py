"""
Slack Web API client - recent channel messages, saved items and reminders
"""
import logging
import time
from typing import Any, Dict, List, Optional, Union

from clariti.config import get_settings
from clariti.exceptions import AuthExpiredError, ProviderError
from clariti.providers.base import BaseProviderClient
from clariti.providers.records import SlackRawMessage, SlackRawReminder, SlackRawStar

settings = get_settings()
logger = logging.getLogger(__name__)

AUTH_ERROR_CODES = {
    "invalid_auth",
    "not_authed",
    "token_expired",
    "token_revoked",
    "account_inactive",
}

SlackRawRecord = Union[SlackRawMessage, SlackRawStar, SlackRawReminder]


class SlackClient(BaseProviderClient):
    """
    Slack answers HTTP 200 with {"ok": false, "error": ...} on failure, so
    every call checks the envelope as well as the status code.
    """

    provider = "slack"

    def __init__(
        self,
        access_token: str,
        base_url: Optional[str] = None,
        lookback_days: Optional[int] = None,
        max_channels: Optional[int] = None,
        history_limit: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(access_token, base_url or settings.SLACK_API_URL, **kwargs)
        self.lookback_days = lookback_days or settings.SLACK_LOOKBACK_DAYS
        self.max_channels = max_channels or settings.SLACK_MAX_CHANNELS
        self.history_limit = history_limit or settings.SLACK_HISTORY_LIMIT

    async def _call(self, method: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        data = await self._get_json(f"/{method}", params=params)
        if not isinstance(data, dict):
            raise ProviderError(self.provider, f"{method} returned an unexpected payload")
        if not data.get("ok", False):
            error = data.get("error", "unknown_error")
            if error in AUTH_ERROR_CODES:
                raise AuthExpiredError(self.provider, f"{method}: {error}")
            raise ProviderError(self.provider, f"{method}: {error}")
        return data

    async def get_channels(self) -> List[Dict[str, Any]]:
        data = await self._call(
            "users.conversations",
            params={"types": "public_channel,private_channel", "exclude_archived": "true"},
        )
        return (data.get("channels") or [])[: self.max_channels]

    async def get_history(self, channel_id: str) -> List[Dict[str, Any]]:
        oldest = time.time() - self.lookback_days * 86400
        data = await self._call(
            "conversations.history",
            params={"channel": channel_id, "oldest": f"{oldest:.6f}", "limit": self.history_limit},
        )
        return data.get("messages") or []

    async def get_stars(self) -> List[Dict[str, Any]]:
        data = await self._call("stars.list", params={"limit": self.history_limit})
        return data.get("items") or []

    async def get_reminders(self) -> List[Dict[str, Any]]:
        data = await self._call("reminders.list")
        return data.get("reminders") or []

    async def fetch_items(self) -> List[SlackRawRecord]:
        """
        Channel listing failures abort the fetch. A single channel, the
        saved-items list or the reminder list failing only loses that part.
        """
        items: List[SlackRawRecord] = []

        for channel in await self.get_channels():
            channel_id = channel.get("id")
            if not channel_id:
                continue
            try:
                messages = await self.get_history(channel_id)
            except AuthExpiredError:
                raise
            except ProviderError as e:
                logger.warning(f"Slack history failed for channel {channel_id}: {e}")
                continue

            for message in messages:
                if message.get("bot_id") or message.get("subtype") == "bot_message":
                    continue
                if not (message.get("text") or "").strip():
                    continue
                items.append(SlackRawMessage(
                    channel_id=channel_id,
                    channel_name=channel.get("name"),
                    data=message,
                ))

        try:
            for star in await self.get_stars():
                if star.get("type") == "message" and star.get("message"):
                    items.append(SlackRawStar(data=star))
        except AuthExpiredError:
            raise
        except ProviderError as e:
            logger.warning(f"Slack saved items unavailable: {e}")

        try:
            for reminder in await self.get_reminders():
                if reminder.get("complete_ts") or not reminder.get("time"):
                    continue
                items.append(SlackRawReminder(data=reminder))
        except AuthExpiredError:
            raise
        except ProviderError as e:
            logger.warning(f"Slack reminders unavailable: {e}")

        logger.info(f"Fetched {len(items)} Slack records")
        return items
