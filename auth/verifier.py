"""Bearer credential parsing and identity verification."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

import httpx
import jwt


class IdentityVerificationError(Exception):
    """The credential was rejected or could not be checked."""


@dataclass(frozen=True)
class Subject:
    id: str
    email: Optional[str] = None
    role: Optional[str] = None


class IdentityVerifier(Protocol):
    def verify(self, credential: str) -> Subject:
        ...


def parse_bearer(header: Optional[str]) -> Optional[str]:
    """Return the credential of an ``Authorization: Bearer`` header, if well formed."""
    if not header or not header.startswith("Bearer "):
        return None
    credential = header[len("Bearer "):].strip()
    if not credential or " " in credential:
        return None
    return credential


class JwtIdentityVerifier:
    """Verifies HMAC-signed access tokens locally with a shared secret."""

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        audience: Optional[str] = None,
    ) -> None:
        self._secret = secret
        self._algorithm = algorithm
        self._audience = audience

    def verify(self, credential: str) -> Subject:
        try:
            payload = jwt.decode(
                credential,
                self._secret,
                algorithms=[self._algorithm],
                audience=self._audience,
                options={"verify_aud": self._audience is not None, "require": ["sub"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise IdentityVerificationError("Token expired") from exc
        except jwt.InvalidTokenError as exc:
            raise IdentityVerificationError("Token invalid") from exc
        return Subject(id=str(payload["sub"]), email=payload.get("email"), role=payload.get("role"))

    def close(self) -> None:
        return None


class SupabaseIdentityVerifier:
    """Asks the Supabase auth service who owns the access token."""

    def __init__(self, client: httpx.Client) -> None:
        self._client = client

    @classmethod
    def from_url(cls, base_url: str, api_key: str, timeout: float = 5.0) -> "SupabaseIdentityVerifier":
        client = httpx.Client(
            base_url=f"{base_url.rstrip('/')}/auth/v1",
            headers={"apikey": api_key},
            timeout=httpx.Timeout(timeout),
        )
        return cls(client)

    def verify(self, credential: str) -> Subject:
        try:
            response = self._client.get("/user", headers={"Authorization": f"Bearer {credential}"})
        except httpx.HTTPError as exc:
            raise IdentityVerificationError(f"Auth service unreachable: {exc}") from exc
        if response.status_code != httpx.codes.OK:
            raise IdentityVerificationError(f"Auth service rejected token ({response.status_code})")
        try:
            user = response.json()
        except ValueError as exc:
            raise IdentityVerificationError("Auth service returned invalid JSON") from exc
        user_id = user.get("id") if isinstance(user, dict) else None
        if not user_id:
            raise IdentityVerificationError("Auth service returned no user")
        return Subject(id=str(user_id), email=user.get("email"), role=user.get("role"))

    def close(self) -> None:
        self._client.close()
