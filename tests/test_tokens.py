from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from jobboard.config import Settings
from jobboard.services.tokens import RESET_TOKEN_TTL, TokenCodec, TokenError, TokenPurpose


def _past_clock(delta: timedelta):
    return lambda: datetime.now(timezone.utc) - delta


def test_issue_and_verify_each_purpose(codec: TokenCodec) -> None:
    for purpose in TokenPurpose:
        token = codec.issue(purpose, "user-1")
        check = codec.verify(token, purpose)
        assert check.ok
        assert check.subject == "user-1"


def test_tokens_issued_back_to_back_differ(codec: TokenCodec) -> None:
    first = codec.issue(TokenPurpose.refresh, "user-1")
    second = codec.issue(TokenPurpose.refresh, "user-1")
    assert first != second


def test_default_ttls(codec: TokenCodec) -> None:
    assert codec.ttl(TokenPurpose.access) == timedelta(minutes=15)
    assert codec.ttl(TokenPurpose.refresh) == timedelta(days=7)
    assert codec.ttl(TokenPurpose.reset) == RESET_TOKEN_TTL == timedelta(hours=1)


@pytest.mark.parametrize("purpose", list(TokenPurpose))
def test_expired_token_reports_expired_even_with_valid_signature(settings: Settings, purpose) -> None:
    stale = TokenCodec.from_settings(settings, clock=_past_clock(timedelta(days=30)))
    token = stale.issue(purpose, "user-1")

    check = TokenCodec.from_settings(settings).verify(token, purpose)

    assert check.error is TokenError.EXPIRED
    assert check.expired
    assert check.subject is None


def test_expiry_follows_the_codec_clock(settings: Settings, codec: TokenCodec) -> None:
    token = codec.issue(TokenPurpose.access, "user-1")
    later = TokenCodec.from_settings(settings, clock=lambda: datetime.now(timezone.utc) + timedelta(hours=2))
    earlier = TokenCodec.from_settings(settings, clock=_past_clock(timedelta(minutes=10)))

    assert later.verify(token, TokenPurpose.access).error is TokenError.EXPIRED
    assert earlier.verify(token, TokenPurpose.access).ok


def test_tampered_token_is_invalid(codec: TokenCodec) -> None:
    header, _, signature = codec.issue(TokenPurpose.access, "user-1").split(".")
    _, other_payload, _ = codec.issue(TokenPurpose.access, "user-2").split(".")
    tampered = ".".join([header, other_payload, signature])

    assert codec.verify(tampered, TokenPurpose.access).error is TokenError.INVALID


def test_token_signed_with_foreign_secret_is_invalid(codec: TokenCodec) -> None:
    forged = jwt.encode(
        {
            "sub": "user-1",
            "purpose": "access",
            "exp": datetime.now(timezone.utc) + timedelta(minutes=5),
        },
        "some-other-secret-0123456789abcdef0123",
        algorithm="HS256",
    )
    assert codec.verify(forged, TokenPurpose.access).error is TokenError.INVALID


@pytest.mark.parametrize("garbage", ["", "not-a-jwt", "a.b.c", None])
def test_malformed_token_is_invalid(codec: TokenCodec, garbage) -> None:
    assert codec.verify(garbage, TokenPurpose.access).error is TokenError.INVALID


def test_refresh_token_does_not_verify_as_access(codec: TokenCodec) -> None:
    token = codec.issue(TokenPurpose.refresh, "user-1")
    assert codec.verify(token, TokenPurpose.access).error is TokenError.INVALID


def test_reset_and_access_share_secret_but_not_purpose(settings: Settings, codec: TokenCodec) -> None:
    assert settings.reset_secret == settings.jwt_secret
    reset_token = codec.issue(TokenPurpose.reset, "user-1")
    access_token = codec.issue(TokenPurpose.access, "user-1")

    assert codec.verify(reset_token, TokenPurpose.access).error is TokenError.INVALID
    assert codec.verify(access_token, TokenPurpose.reset).error is TokenError.INVALID


def test_token_without_purpose_claim_is_invalid(settings: Settings, codec: TokenCodec) -> None:
    legacy = jwt.encode(
        {"sub": "user-1", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
        settings.jwt_secret,
        algorithm="HS256",
    )
    assert codec.verify(legacy, TokenPurpose.access).error is TokenError.INVALID


def test_codec_requires_every_secret(settings: Settings) -> None:
    settings.jwt_refresh_secret = ""
    with pytest.raises(ValueError):
        TokenCodec.from_settings(settings)
