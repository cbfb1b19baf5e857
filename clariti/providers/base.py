"""
Base class for provider REST clients
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx

from clariti.config import get_settings
from clariti.exceptions import AuthExpiredError, ProviderError

settings = get_settings()
logger = logging.getLogger(__name__)


class BaseProviderClient(ABC):
    """
    Bearer-token REST client for one provider.

    Use as an async context manager so the underlying connection pool is
    closed when the sync finishes.
    """

    provider = "provider"

    def __init__(
        self,
        access_token: str,
        base_url: str,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout or settings.PROVIDER_TIMEOUT_S
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Authorization": f"Bearer {self.access_token}"},
            timeout=self.timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        if self._client is None:
            raise RuntimeError(f"{type(self).__name__} must be used as an async context manager")

        try:
            response = await self._client.get(path, params=params)
        except httpx.HTTPError as e:
            raise ProviderError(self.provider, f"request to {path} failed: {e}")

        if response.status_code == 401:
            raise AuthExpiredError(self.provider, "access token rejected", status_code=401)
        if response.status_code >= 400:
            raise ProviderError(self.provider, f"GET {path} failed", status_code=response.status_code)

        try:
            return response.json()
        except ValueError:
            raise ProviderError(self.provider, f"GET {path} returned invalid JSON", status_code=response.status_code)

    @abstractmethod
    async def fetch_items(self) -> List[Any]:
        """Return the bounded batch of raw records for one sync"""
