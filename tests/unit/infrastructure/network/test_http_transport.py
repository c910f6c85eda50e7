import httpx
import pytest

from rescache.domain.exceptions import NetworkUnavailable
from rescache.domain.models.resource import ResourceRequest
from rescache.infrastructure.network.http_transport import HttpTransport


def make_transport(handler) -> HttpTransport:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://shop.test")
    return HttpTransport(client=client)


@pytest.mark.asyncio
async def test_fetch_maps_response_fields():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["accept"] = request.headers.get("accept")
        return httpx.Response(200, content=b'{"ok": true}', headers={"Content-Type": "application/json"})

    transport = make_transport(handler)
    response = await transport.fetch(
        ResourceRequest(url="http://shop.test/api/products", headers={"Accept": "application/json"})
    )

    assert seen == {"method": "GET", "url": "http://shop.test/api/products", "accept": "application/json"}
    assert response.status == 200
    assert response.json() == {"ok": True}
    assert response.content_type == "application/json"
    assert "date" in response.metadata


@pytest.mark.asyncio
async def test_non_2xx_status_is_a_response_not_an_error():
    transport = make_transport(lambda request: httpx.Response(500, content=b"boom"))

    response = await transport.fetch(ResourceRequest(url="http://shop.test/api/x"))

    assert response.status == 500
    assert not response.ok


@pytest.mark.asyncio
async def test_connect_error_maps_to_network_unavailable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    transport = make_transport(handler)

    with pytest.raises(NetworkUnavailable) as exc_info:
        await transport.fetch(ResourceRequest(url="http://shop.test/api/x"))
    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
    assert exc_info.value.url == "http://shop.test/api/x"


@pytest.mark.asyncio
async def test_timeout_maps_to_network_unavailable():
    def handler(request):
        raise httpx.ReadTimeout("too slow", request=request)

    transport = make_transport(handler)

    with pytest.raises(NetworkUnavailable, match="timed out"):
        await transport.fetch(ResourceRequest(url="http://shop.test/uploads/a.jpg"))


@pytest.mark.asyncio
async def test_close_leaves_injected_client_open():
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(204)))
    transport = HttpTransport(client=client)

    await transport.close()

    assert not client.is_closed
    await client.aclose()


@pytest.mark.asyncio
async def test_close_owned_client():
    transport = HttpTransport(base_url="http://shop.test")

    await transport.close()

    assert transport._client.is_closed
