import uuid

import httpx
import pytest

from conftest import make_token
from mapshare.client.api import AccessTokenSession, MapShareClient
from mapshare.errors import AuthenticationRequired, FetchError, ValidationError


@pytest.mark.asyncio
async def test_upsert_then_list_round_trip(api, user_id):
    record = await api.upsert_presence(40.0, -73.0)
    assert record.user_id == user_id
    assert record.updated_at.tzinfo is not None

    records = await api.list_presence()
    assert [(r.user_id, r.position) for r in records] == [(user_id, (40.0, -73.0))]


@pytest.mark.asyncio
async def test_delete_twice_is_fine(api, user_id):
    await api.upsert_presence(1.0, 1.0)
    await api.delete_presence()
    await api.delete_presence()
    assert await api.list_presence() == []


@pytest.mark.asyncio
async def test_client_validates_before_sending():
    def handler(request):
        raise AssertionError("request should not have been sent")

    async with MapShareClient(
        "http://testserver",
        AccessTokenSession(make_token()),
        transport=httpx.MockTransport(handler),
    ) as c:
        with pytest.raises(ValidationError):
            await c.upsert_presence(95, 0)
        with pytest.raises(ValidationError):
            await c.create_location("Cafe", 0, -200)


@pytest.mark.asyncio
async def test_missing_session_maps_to_authentication_required():
    def handler(request):
        assert "authorization" not in request.headers
        return httpx.Response(401, json={"detail": "Authentication required"})

    async with MapShareClient("http://testserver", transport=httpx.MockTransport(handler)) as c:
        with pytest.raises(AuthenticationRequired):
            await c.upsert_presence(1, 1)


@pytest.mark.asyncio
async def test_server_and_transport_failures_are_fetch_errors():
    def broken(request):
        return httpx.Response(500, json={"detail": "Failed to fetch live locations"})

    async with MapShareClient("http://testserver", transport=httpx.MockTransport(broken)) as c:
        with pytest.raises(FetchError) as exc:
            await c.list_presence()
        assert exc.value.status_code == 500

    def unreachable(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with MapShareClient("http://testserver", transport=httpx.MockTransport(unreachable)) as c:
        with pytest.raises(FetchError):
            await c.list_presence()


@pytest.mark.asyncio
async def test_locations_round_trip(api, user_id):
    created = await api.create_location("Corner Cafe", 48.85, 2.35, description="coffee")
    assert created["status"] == "pending"

    names = [loc["name"] for loc in await api.list_locations()]
    assert names == ["Corner Cafe"]
    assert await api.check_admin() is False


def test_feed_url_uses_websocket_scheme():
    assert MapShareClient("https://maps.example.com/").feed_url == "wss://maps.example.com/v1/live-locations/ws"
    assert MapShareClient("http://localhost:8000").feed_url == "ws://localhost:8000/v1/live-locations/ws"


def test_session_reads_sub_claim():
    uid = str(uuid.uuid4())
    session = AccessTokenSession(make_token(uid))
    assert session.current_user_id() == uid

    session.sign_out()
    assert session.current_user_id() is None


def test_expired_or_garbage_token_means_signed_out():
    assert AccessTokenSession(make_token(expires_in=-10)).current_user_id() is None
    assert AccessTokenSession("garbage").current_user_id() is None
