"""
IpfsClient - thin pass-through to a hosted IPFS HTTP API (Infura-style)

Only three calls are used:
- POST /api/v0/add         upload bytes, returns the CID
- POST /api/v0/cat?arg=    fetch bytes by CID
- POST /api/v0/pin/add?arg= pin a CID

Usage:
    client = IpfsClient.from_settings(get_settings())
    cid = await client.add(b"hello", file_name="hello.txt")
    data = await client.cat(cid)
"""
import logging
from typing import Optional, Union

import httpx

from config import Settings

logger = logging.getLogger(__name__)


class IpfsError(Exception):
    """Upstream IPFS gateway failure"""


class IpfsNotConfiguredError(IpfsError):
    """Raised when credentials are missing"""


class IpfsClient:
    """
    IPFS HTTP API client.

    A fresh httpx.AsyncClient is opened per call; an optional transport can
    be injected (httpx.MockTransport in tests).
    """

    def __init__(
        self,
        project_id: Optional[str],
        project_secret: Optional[str],
        api_url: str = "https://ipfs.infura.io:5001",
        gateway_url: str = "https://ipfs.io/ipfs",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.project_id = project_id
        self.project_secret = project_secret
        self.api_url = api_url.rstrip('/')
        self.gateway_url = gateway_url.rstrip('/')
        self.timeout = timeout
        self.transport = transport

        if not self.is_configured:
            logger.warning(
                "IPFS credentials not configured. Set IPFS_PROJECT_ID and "
                "IPFS_PROJECT_SECRET (or INFURA_IPFS_ID / INFURA_IPFS_SECRET)."
            )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> 'IpfsClient':
        return cls(
            project_id=settings.ipfs_project_id,
            project_secret=settings.ipfs_project_secret,
            api_url=settings.ipfs_api_url,
            gateway_url=settings.ipfs_gateway_url,
            timeout=settings.ipfs_timeout_seconds,
            transport=transport,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.project_id and self.project_secret)

    def gateway_url_for(self, cid: str) -> str:
        """Public gateway URL for a CID"""
        return f"{self.gateway_url}/{cid}"

    async def _post(self, path: str, **kwargs) -> httpx.Response:
        if not self.is_configured:
            raise IpfsNotConfiguredError("IPFS service not configured")

        try:
            async with httpx.AsyncClient(
                base_url=self.api_url,
                auth=(self.project_id, self.project_secret),
                timeout=self.timeout,
                transport=self.transport,
            ) as client:
                response = await client.post(path, **kwargs)
                response.raise_for_status()
                return response
        except httpx.HTTPStatusError as e:
            raise IpfsError(
                f"IPFS gateway returned {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except httpx.RequestError as e:
            raise IpfsError(f"Network error talking to IPFS gateway: {e}") from e

    async def add(self, content: Union[bytes, str], file_name: Optional[str] = None) -> str:
        """
        Upload content.

        Args:
            content: Raw bytes or text (encoded as UTF-8)
            file_name: Optional name sent with the multipart part

        Returns:
            CID of the uploaded content
        """
        data = content.encode('utf-8') if isinstance(content, str) else content
        response = await self._post(
            "/api/v0/add",
            files={"file": (file_name or "blob", data)},
        )

        try:
            cid = response.json()["Hash"]
        except (ValueError, KeyError) as e:
            raise IpfsError(f"Unexpected IPFS add response: {response.text[:200]}") from e

        logger.info(f"Content uploaded to IPFS with CID: {cid}")
        return cid

    async def cat(self, cid: str) -> bytes:
        """Retrieve content by CID"""
        response = await self._post("/api/v0/cat", params={"arg": cid})
        return response.content

    async def pin(self, cid: str) -> bool:
        """
        Pin a CID so the gateway keeps it.

        Returns:
            True if the gateway reports the CID as pinned
        """
        response = await self._post("/api/v0/pin/add", params={"arg": cid})
        try:
            pins = response.json().get("Pins", [])
        except ValueError as e:
            raise IpfsError(f"Unexpected IPFS pin response: {response.text[:200]}") from e

        pinned = cid in pins
        if pinned:
            logger.info(f"Content with CID {cid} pinned successfully")
        else:
            logger.warning(f"IPFS gateway did not confirm pin for {cid}: {pins}")
        return pinned
