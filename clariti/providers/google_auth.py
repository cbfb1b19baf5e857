"""
Google OAuth token refresh
"""
import logging
from datetime import timedelta
from typing import Optional

import httpx

from clariti.config import get_settings
from clariti.exceptions import AuthExpiredError, ProviderError
from clariti.models.integration import Integration
from clariti.utils.helpers import utcnow

settings = get_settings()
logger = logging.getLogger(__name__)


def token_expired(integration: Integration) -> bool:
    return integration.expires_at is not None and integration.expires_at <= utcnow()


async def refresh_google_token(
    integration: Integration,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Integration:
    """
    Exchange the stored refresh token for a new access token and write it
    back onto the integration row. The caller owns the commit.
    """
    if not integration.refresh_token:
        raise AuthExpiredError("google", "no refresh token stored; reconnect required")

    async with httpx.AsyncClient(timeout=settings.PROVIDER_TIMEOUT_S, transport=transport) as client:
        try:
            response = await client.post(
                settings.GOOGLE_TOKEN_URL,
                data={
                    "client_id": settings.GOOGLE_CLIENT_ID,
                    "client_secret": settings.GOOGLE_CLIENT_SECRET,
                    "refresh_token": integration.refresh_token,
                    "grant_type": "refresh_token",
                },
            )
        except httpx.HTTPError as e:
            raise ProviderError("google", f"token refresh request failed: {e}")

    if response.status_code in (400, 401):
        raise AuthExpiredError("google", "refresh token rejected", status_code=response.status_code)
    if response.status_code >= 400:
        raise ProviderError("google", "token refresh failed", status_code=response.status_code)

    try:
        payload = response.json()
    except ValueError:
        raise ProviderError("google", "token refresh returned invalid JSON")

    access_token = payload.get("access_token")
    if not access_token:
        raise AuthExpiredError("google", "token refresh returned no access token")

    integration.access_token = access_token
    integration.expires_at = utcnow() + timedelta(seconds=int(payload.get("expires_in", 3600)))
    if payload.get("refresh_token"):
        integration.refresh_token = payload["refresh_token"]
    integration.updated_at = utcnow()

    logger.info(f"Refreshed Google token for user {integration.user_id}")
    return integration
