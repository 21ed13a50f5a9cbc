"""Supabase Auth lookups over HTTP.

Only two calls are needed: resolving a browser access token to a user during
checkout, and resolving a user id to an email when notifying the admin.
"""

from dataclasses import dataclass

import httpx

from ukprofit.common.logging import logger


class IdentityLookupError(Exception):
    """The identity provider could not be queried."""


@dataclass(frozen=True)
class AuthenticatedUser:
    id: str
    email: str


class SupabaseAuthClient:
    """Thin async client for the Supabase Auth REST API."""

    def __init__(
        self,
        base_url: str,
        anon_key: str,
        service_role_key: str,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.anon_key = anon_key
        self.service_role_key = service_role_key
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def get_user_from_access_token(self, access_token: str | None) -> AuthenticatedUser | None:
        """Return the user owning `access_token`, or None for a missing/invalid token."""

        if not access_token:
            return None
        if not self.base_url or not self.anon_key:
            raise IdentityLookupError("Supabase URL or anon key is not configured")
        try:
            async with self._client() as client:
                resp = await client.get(
                    f"{self.base_url}/auth/v1/user",
                    headers={"apikey": self.anon_key, "Authorization": f"Bearer {access_token}"},
                )
        except httpx.HTTPError as exc:
            raise IdentityLookupError(f"access token lookup failed: {exc}") from exc
        if resp.status_code in (401, 403, 404):
            return None
        if resp.status_code >= 400:
            raise IdentityLookupError(f"access token lookup returned {resp.status_code}")
        data = resp.json()
        if not data.get("id"):
            return None
        return AuthenticatedUser(id=str(data["id"]), email=data.get("email") or "")

    async def get_user_email(self, user_id: str) -> str | None:
        """Look up a user's email by id with the service-role key."""

        if not self.base_url or not self.service_role_key:
            raise IdentityLookupError("Supabase URL or service role key is not configured")
        try:
            async with self._client() as client:
                resp = await client.get(
                    f"{self.base_url}/auth/v1/admin/users/{user_id}",
                    headers={
                        "apikey": self.service_role_key,
                        "Authorization": f"Bearer {self.service_role_key}",
                    },
                )
        except httpx.HTTPError as exc:
            raise IdentityLookupError(f"user lookup failed: {exc}") from exc
        if resp.status_code == 404:
            logger.warning("identity_user_not_found user_id=%s", user_id)
            return None
        if resp.status_code >= 400:
            raise IdentityLookupError(f"user lookup returned {resp.status_code}")
        data = resp.json()
        # Older GoTrue versions wrap the user object.
        user = data.get("user", data)
        return user.get("email") or None
