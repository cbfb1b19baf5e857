"""
Domain exceptions raised by the ingestion pipeline
"""
from typing import Optional


class SyncError(Exception):
    """Base class for sync failures"""


class IntegrationNotConnectedError(SyncError):
    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"{provider} is not connected")


class ProviderError(SyncError):
    """Upstream provider returned a non-success response or was unreachable"""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        self.provider = provider
        self.status_code = status_code
        self.message = message
        super().__init__(f"{provider}: {message}" + (f" (HTTP {status_code})" if status_code else ""))


class AuthExpiredError(ProviderError):
    """Credential rejected and could not be refreshed; the user must reconnect"""
