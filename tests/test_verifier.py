from __future__ import annotations

from datetime import datetime, timedelta, timezone

import httpx
import jwt
import pytest

from auth.verifier import (
    IdentityVerificationError,
    JwtIdentityVerifier,
    SupabaseIdentityVerifier,
    parse_bearer,
)

SECRET = "test-secret-with-at-least-thirty-two-bytes"


def _token(secret: str = SECRET, **claims) -> str:
    payload = {
        "sub": "user-1",
        "aud": "authenticated",
        "email": "ops@example.test",
        "role": "authenticated",
        "exp": datetime.now(timezone.utc) + timedelta(minutes=5),
    }
    payload.update(claims)
    return jwt.encode({k: v for k, v in payload.items() if v is not None}, secret, algorithm="HS256")


@pytest.mark.parametrize(
    ("header", "expected"),
    [
        ("Bearer abc.def.ghi", "abc.def.ghi"),
        ("Bearer   padded ", "padded"),
        (None, None),
        ("", None),
        ("Bearer ", None),
        ("Basic dXNlcjpwYXNz", None),
        ("bearer abc", None),
        ("Bearer two parts", None),
    ],
)
def test_parse_bearer(header, expected) -> None:
    assert parse_bearer(header) == expected


def test_jwt_verifier_accepts_valid_token() -> None:
    verifier = JwtIdentityVerifier(SECRET, audience="authenticated")

    subject = verifier.verify(_token())

    assert subject.id == "user-1"
    assert subject.email == "ops@example.test"
    assert subject.role == "authenticated"


@pytest.mark.parametrize(
    "token",
    [
        _token(secret="another-secret-with-at-least-32-bytes!"),
        _token(exp=datetime.now(timezone.utc) - timedelta(minutes=1)),
        _token(aud="anon"),
        _token(sub=None),
        "not-a-jwt",
    ],
)
def test_jwt_verifier_rejects_bad_tokens(token: str) -> None:
    verifier = JwtIdentityVerifier(SECRET, audience="authenticated")

    with pytest.raises(IdentityVerificationError):
        verifier.verify(token)


def test_jwt_verifier_without_audience_ignores_aud_claim() -> None:
    verifier = JwtIdentityVerifier(SECRET, audience=None)

    assert verifier.verify(_token(aud="anything")).id == "user-1"


def _supabase(handler) -> SupabaseIdentityVerifier:
    client = httpx.Client(
        base_url="https://project.supabase.co/auth/v1",
        transport=httpx.MockTransport(handler),
    )
    return SupabaseIdentityVerifier(client)


def test_supabase_verifier_returns_user() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "u-42", "email": "a@b.test", "role": "authenticated"})

    subject = _supabase(handler).verify("access-token")

    assert subject.id == "u-42"
    assert seen[0].url.path == "/auth/v1/user"
    assert seen[0].headers["Authorization"] == "Bearer access-token"


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(401, json={"msg": "invalid JWT"}),
        httpx.Response(200, json={}),
        httpx.Response(200, content=b"<html>"),
    ],
)
def test_supabase_verifier_rejections(response: httpx.Response) -> None:
    verifier = _supabase(lambda request: response)

    with pytest.raises(IdentityVerificationError):
        verifier.verify("access-token")


def test_supabase_verifier_timeout_is_rejection() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("slow", request=request)

    with pytest.raises(IdentityVerificationError):
        _supabase(handler).verify("access-token")
