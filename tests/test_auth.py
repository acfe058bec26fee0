import httpx
import pytest
from jose import jwt

from fnb_assistant.core.auth import DEV_USER, SupabaseAuthClient, get_current_user

SUPABASE_URL = "https://project.supabase.co"


def remote_client(settings, handler) -> SupabaseAuthClient:
    settings.supabase_url = SUPABASE_URL
    settings.supabase_anon_key = "anon"
    return SupabaseAuthClient(settings, transport=httpx.MockTransport(handler))


# ── Remote verification ─────────────────────────────────────────────

async def test_remote_user_is_resolved(settings):
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = str(request.url)
        seen["headers"] = request.headers
        return httpx.Response(200, json={"id": "user-1", "email": "owner@taverna.gr", "role": "authenticated"})

    user = await remote_client(settings, handler).verify_token("tok")

    assert user.user_id == "user-1"
    assert user.email == "owner@taverna.gr"
    assert seen["url"] == f"{SUPABASE_URL}/auth/v1/user"
    assert seen["headers"]["authorization"] == "Bearer tok"
    assert seen["headers"]["apikey"] == "anon"


async def test_rejected_token_is_unauthorized(settings):
    client = remote_client(settings, lambda request: httpx.Response(401, json={"msg": "bad jwt"}))
    with pytest.raises(PermissionError, match="Unauthorized"):
        await client.verify_token("tok")


@pytest.mark.parametrize("response", [
    httpx.Response(200, text="<html>gateway timeout</html>"),
    httpx.Response(200, json=["not", "an", "object"]),
])
async def test_malformed_auth_response_is_unauthorized(settings, response):
    client = remote_client(settings, lambda request: response)
    with pytest.raises(PermissionError, match="Unauthorized"):
        await client.verify_token("tok")


async def test_user_without_id_is_refused(settings):
    client = remote_client(settings, lambda request: httpx.Response(200, json={"email": "x@y.gr"}))
    with pytest.raises(PermissionError, match="no subject"):
        await client.verify_token("tok")


async def test_unreachable_auth_service(settings):
    def handler(request: httpx.Request):
        raise httpx.ConnectError("connection refused")

    with pytest.raises(PermissionError, match="Unable to verify"):
        await remote_client(settings, handler).verify_token("tok")


# ── Local verification and the header ──────────────────────────────

async def test_local_jwt_is_verified(settings, flags):
    settings.supabase_jwt_secret = "s3cret"
    flags.use_auth = True
    client = SupabaseAuthClient(settings)

    token = jwt.encode({"sub": "user-2", "aud": "authenticated", "email": "chef@taverna.gr"}, "s3cret")
    user = await get_current_user(f"Bearer {token}", client, flags)
    assert user.user_id == "user-2"

    forged = jwt.encode({"sub": "user-2", "aud": "authenticated"}, "other")
    with pytest.raises(PermissionError, match="Invalid token"):
        await get_current_user(f"Bearer {forged}", client, flags)


@pytest.mark.parametrize("header", ["", "Basic abc", "Bearer "])
async def test_malformed_header_is_refused(settings, flags, header):
    flags.use_auth = True
    with pytest.raises(PermissionError):
        await get_current_user(header, SupabaseAuthClient(settings), flags)


async def test_dev_mode_returns_dev_user(settings, flags):
    flags.use_auth = False
    assert await get_current_user("", SupabaseAuthClient(settings), flags) is DEV_USER
