"""
Microsoft Graph Client-Credential Authentication
Application tokens for the calling bot's Graph session
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Dict, Optional

import httpx

from callbot.domain.errors import PlatformError

logger = logging.getLogger(__name__)


class ClientCredentialTokenProvider:
    """
    Acquires and caches application tokens via the OAuth 2.0
    client-credentials grant.

    API Reference:
    - https://learn.microsoft.com/en-us/graph/auth-v2-service
    """

    OAUTH_TOKEN_URL = "https://login.microsoftonline.com/{tenant_id}/oauth2/v2.0/token"
    GRAPH_SCOPE = "https://graph.microsoft.com/.default"
    EXPIRY_BUFFER = timedelta(minutes=5)

    def __init__(
        self,
        tenant_id: str,
        client_id: str,
        client_secret: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        if not tenant_id or not client_id or not client_secret:
            raise ValueError(
                "Graph credentials not configured. "
                "Set TENANT_ID, CLIENT_ID and CLIENT_SECRET environment variables."
            )
        self.tenant_id = tenant_id
        self.client_id = client_id
        self._client_secret = client_secret
        self._timeout = timeout
        self._transport = transport
        self._access_token: Optional[str] = None
        self._expires_at: Optional[datetime] = None
        self._lock = asyncio.Lock()

    def is_token_expired(self) -> bool:
        """Check if current token is expired or about to expire."""
        if not self._access_token or not self._expires_at:
            return True
        return datetime.utcnow() >= (self._expires_at - self.EXPIRY_BUFFER)

    async def get_token(self) -> str:
        """Return a valid access token, fetching a new one when needed."""
        async with self._lock:
            if self.is_token_expired():
                await self._fetch_token()
            return self._access_token

    async def get_auth_headers(self) -> Dict[str, str]:
        token = await self.get_token()
        return {"Authorization": f"Bearer {token}"}

    async def _fetch_token(self) -> None:
        data = {
            "client_id": self.client_id,
            "client_secret": self._client_secret,
            "grant_type": "client_credentials",
            "scope": self.GRAPH_SCOPE
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(
                    self.OAUTH_TOKEN_URL.format(tenant_id=self.tenant_id),
                    data=data,
                    headers={"Content-Type": "application/x-www-form-urlencoded"}
                )
        except httpx.HTTPError as e:
            raise PlatformError(f"Token request failed: {e}", cause=e)

        if response.status_code != 200:
            logger.error(f"Token request failed: {response.text}")
            raise PlatformError(
                f"Token request failed: {response.text}",
                status_code=response.status_code
            )

        try:
            token_data = response.json()
            access_token = token_data["access_token"]
            expires_in = int(token_data.get("expires_in", 3600))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error(f"Malformed token response: {response.text}")
            raise PlatformError(f"Malformed token response: {e!r}", cause=e)

        self._access_token = access_token
        self._expires_at = datetime.utcnow() + timedelta(seconds=expires_in)
        logger.debug(f"Graph token acquired for tenant {self.tenant_id[:8]}...")
