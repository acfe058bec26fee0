"""
Bearer-token validation against Supabase Auth, or dev-mode bypass. Controlled by FF_USE_AUTH.

With SUPABASE_JWT_SECRET set, tokens are verified locally (HS256 + audience).
Without it, the token is checked by calling the auth service's /user endpoint.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

import httpx
from jose import jwt, JWTError

from .config import Settings
from .flags import FeatureFlags

logger = logging.getLogger(__name__)


@dataclass
class AuthenticatedUser:
    user_id: str
    email: str = ""
    role: str = ""
    claims: dict = field(default_factory=dict)


# Dev-mode user, returned when FF_USE_AUTH=false
DEV_USER = AuthenticatedUser(
    user_id="dev-user",
    email="dev@local",
    role="authenticated",
)


class SupabaseAuthClient:
    """Validates Supabase access tokens."""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self._transport = transport

    def _verify_local(self, token: str) -> AuthenticatedUser:
        payload = jwt.decode(
            token,
            self.settings.supabase_jwt_secret,
            algorithms=["HS256"],
            audience=self.settings.supabase_jwt_audience,
        )
        return AuthenticatedUser(
            user_id=payload.get("sub", ""),
            email=payload.get("email", ""),
            role=payload.get("role", ""),
            claims=payload,
        )

    async def _verify_remote(self, token: str) -> AuthenticatedUser:
        if not self.settings.supabase_url:
            raise PermissionError("Auth is enabled but SUPABASE_URL is not configured")

        url = f"{self.settings.supabase_url.rstrip('/')}/auth/v1/user"
        headers = {
            "Authorization": f"Bearer {token}",
            "apikey": self.settings.supabase_anon_key,
        }
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                resp = await client.get(url, headers=headers, timeout=10)
        except httpx.HTTPError as e:
            logger.error("Auth service unreachable: %s", e)
            raise PermissionError("Unable to verify token") from e

        if resp.status_code != 200:
            raise PermissionError("Unauthorized")

        try:
            data = resp.json()
        except ValueError as e:
            logger.error("Auth service returned a non-JSON body (status=%s)", resp.status_code)
            raise PermissionError("Unauthorized") from e
        if not isinstance(data, dict):
            raise PermissionError("Unauthorized")

        return AuthenticatedUser(
            user_id=data.get("id", ""),
            email=data.get("email", ""),
            role=data.get("role", ""),
            claims=data,
        )

    async def verify_token(self, token: str) -> AuthenticatedUser:
        if self.settings.supabase_jwt_secret:
            user = self._verify_local(token)
        else:
            user = await self._verify_remote(token)
        if not user.user_id:
            raise PermissionError("Token has no subject")
        return user


async def get_current_user(
    authorization: str,
    client: SupabaseAuthClient,
    flags: FeatureFlags,
) -> AuthenticatedUser:
    """
    Resolve the current user from the Authorization header.
    If FF_USE_AUTH is false, returns a dev user.
    """
    if not flags.use_auth:
        return DEV_USER

    if not authorization:
        raise PermissionError("Missing authorization")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise PermissionError("Invalid Authorization header. Use: Bearer <token>")

    try:
        return await client.verify_token(token)
    except JWTError as e:
        raise PermissionError(f"Invalid token: {e}")
