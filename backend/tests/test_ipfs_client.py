"""
IPFS client tests against an httpx.MockTransport gateway
"""
import httpx
import pytest

from conftest import TEST_CID
from services.ipfs_client import IpfsClient, IpfsError, IpfsNotConfiguredError


@pytest.fixture
def ipfs(ipfs_transport) -> IpfsClient:
    return IpfsClient("test-project", "test-secret", transport=ipfs_transport)


class TestIpfsClient:

    @pytest.mark.asyncio
    async def test_add_returns_cid(self, ipfs, ipfs_requests):
        cid = await ipfs.add("hello ipfs", file_name="hello.txt")

        assert cid == TEST_CID
        request = ipfs_requests[0]
        assert request.method == "POST"
        assert request.url.path == "/api/v0/add"
        assert request.headers["authorization"].startswith("Basic ")
        assert request.headers["content-type"].startswith("multipart/form-data")

    @pytest.mark.asyncio
    async def test_cat_returns_bytes(self, ipfs, ipfs_requests):
        assert await ipfs.cat(TEST_CID) == b"hello ipfs"
        assert ipfs_requests[0].url.params["arg"] == TEST_CID

    @pytest.mark.asyncio
    async def test_upstream_error_raises(self, ipfs):
        with pytest.raises(IpfsError, match="500"):
            await ipfs.cat("QmMissing")

    @pytest.mark.asyncio
    async def test_pin(self, ipfs):
        assert await ipfs.pin(TEST_CID) is True

    @pytest.mark.asyncio
    async def test_pin_not_confirmed(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"Pins": []}))
        ipfs = IpfsClient("id", "secret", transport=transport)
        assert await ipfs.pin(TEST_CID) is False

    @pytest.mark.asyncio
    async def test_unexpected_add_response(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="not json"))
        ipfs = IpfsClient("id", "secret", transport=transport)
        with pytest.raises(IpfsError):
            await ipfs.add(b"bytes")

    @pytest.mark.asyncio
    async def test_network_error_wrapped(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        ipfs = IpfsClient("id", "secret", transport=httpx.MockTransport(handler))
        with pytest.raises(IpfsError, match="Network error"):
            await ipfs.cat(TEST_CID)

    @pytest.mark.asyncio
    async def test_not_configured(self):
        ipfs = IpfsClient(None, None)
        assert ipfs.is_configured is False
        with pytest.raises(IpfsNotConfiguredError):
            await ipfs.add("anything")

    def test_gateway_url(self, ipfs):
        assert ipfs.gateway_url_for(TEST_CID) == f"https://ipfs.io/ipfs/{TEST_CID}"

    def test_from_settings(self, settings):
        ipfs = IpfsClient.from_settings(settings)
        assert ipfs.is_configured is True
        assert ipfs.api_url == "https://ipfs.infura.io:5001"
