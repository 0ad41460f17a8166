"""
Meeting Link Refresher

Host links for Zoom meetings carry a short-lived `zak` token. Before a reminder goes out
the tutor's link is rebuilt with a fresh token obtained through server-to-server OAuth.
"""
import logging
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import httpx

from tutorly import config
from tutorly.errors import UpstreamFailure

logger = logging.getLogger(__name__)

ZOOM_TOKEN_URL = "https://zoom.us/oauth/token"
ZOOM_ZAK_URL = "https://api.zoom.us/v2/users/me/zak"


def replace_zak(host_link: str, zak: str) -> str:
    """Return `host_link` with its zak query parameter set to `zak`"""
    parts = urlsplit(host_link)
    query = [(key, value) for key, value in parse_qsl(parts.query, keep_blank_values=True) if key != "zak"]
    query.append(("zak", zak))
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


class ZoomClient:
    """Minimal Zoom API client: account-credentials token plus the host ZAK token"""

    def __init__(
        self,
        account_id: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
    ):
        self.account_id = account_id if account_id is not None else config.ZOOM_ACCOUNT_ID
        self.client_id = client_id if client_id is not None else config.ZOOM_CLIENT_ID
        self.client_secret = client_secret if client_secret is not None else config.ZOOM_CLIENT_SECRET
        self.timeout = timeout or config.ZOOM_API_TIMEOUT_SECONDS
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=self.timeout)

    async def get_access_token(self) -> str:
        if not (self.account_id and self.client_id and self.client_secret):
            raise UpstreamFailure("Zoom credentials are not configured")

        try:
            async with self._client() as client:
                response = await client.post(
                    ZOOM_TOKEN_URL,
                    params={"grant_type": "account_credentials", "account_id": self.account_id},
                    auth=(self.client_id, self.client_secret),
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
                response.raise_for_status()
                token = response.json().get("access_token")
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Error getting Zoom access token: {e}")
            raise UpstreamFailure("Failed to get Zoom access token") from e

        if not token:
            raise UpstreamFailure("No access token in Zoom response")
        return token

    async def get_zak(self) -> str:
        access_token = await self.get_access_token()

        try:
            async with self._client() as client:
                response = await client.get(
                    ZOOM_ZAK_URL,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
                response.raise_for_status()
                zak = response.json().get("token")
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Error getting Zoom ZAK token: {e}")
            raise UpstreamFailure("Failed to get Zoom ZAK token") from e

        if not zak:
            raise UpstreamFailure("No ZAK token in Zoom response")
        return zak


class MeetingLinkRefresher:
    def __init__(self, client: Optional[ZoomClient] = None):
        self.client = client or ZoomClient()

    async def refresh(self, host_link: str) -> str:
        """Rebuild a host link with a fresh zak token; raises UpstreamFailure"""
        zak = await self.client.get_zak()
        return replace_zak(host_link, zak)

    async def refresh_or_fallback(self, host_link: Optional[str]) -> Optional[str]:
        """Refresh, falling back to the stored link when the provider is unavailable"""
        if not host_link:
            return host_link
        try:
            return await self.refresh(host_link)
        except UpstreamFailure as e:
            logger.warning(f"Using stored host link, refresh failed: {e.message}")
            return host_link


# Singleton instance
_refresher_instance: Optional[MeetingLinkRefresher] = None


def get_meeting_link_refresher() -> MeetingLinkRefresher:
    """Get singleton instance of MeetingLinkRefresher"""
    global _refresher_instance
    if _refresher_instance is None:
        _refresher_instance = MeetingLinkRefresher()
    return _refresher_instance
