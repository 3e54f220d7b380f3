from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from conftest import run
from jobboard.errors import Forbidden, Unauthorized
from jobboard.models import Identity, Role
from jobboard.services.gate import AuthorizationGate, can_access, extract_access_token, extract_bearer
from jobboard.services.tokens import TokenCodec, TokenPurpose


@pytest.fixture
def alice(sessions):
    return run(sessions.register("alice@example.com", "secret1", "Alice", "alice"))


def test_extract_bearer() -> None:
    assert extract_bearer("Bearer abc") == "abc"
    assert extract_bearer("bearer abc") == "abc"
    assert extract_bearer("Basic abc") is None
    assert extract_bearer("Bearer ") is None
    assert extract_bearer(None) is None


def test_header_takes_precedence_over_cookie() -> None:
    assert extract_access_token("Bearer from-header", "from-cookie") == "from-header"
    assert extract_access_token(None, "from-cookie") == "from-cookie"
    assert extract_access_token(None, None) is None


def test_authenticate_resolves_identity_from_header(gate, alice) -> None:
    identity = run(gate.authenticate(f"Bearer {alice.access_token}"))

    assert identity == Identity(
        id=alice.user.id,
        email="alice@example.com",
        username="alice",
        name="Alice",
        role=Role.user,
        is_active=True,
    )


def test_authenticate_from_cookie(gate, alice) -> None:
    assert run(gate.authenticate(None, alice.access_token)).id == alice.user.id


def test_header_wins_even_when_cookie_is_valid(gate, alice) -> None:
    with pytest.raises(Unauthorized, match="Invalid token"):
        run(gate.authenticate("Bearer junk", alice.access_token))


def test_missing_token(gate) -> None:
    with pytest.raises(Unauthorized, match="Access token required"):
        run(gate.authenticate(None, None))


def test_expired_token(settings, gate, alice) -> None:
    stale = TokenCodec.from_settings(settings, clock=lambda: datetime.now(timezone.utc) - timedelta(hours=1))
    token = stale.issue(TokenPurpose.access, alice.user.id)

    with pytest.raises(Unauthorized, match="Token expired"):
        run(gate.authenticate(f"Bearer {token}"))


def test_refresh_token_is_not_an_access_token(gate, alice) -> None:
    with pytest.raises(Unauthorized, match="Invalid token"):
        run(gate.authenticate(f"Bearer {alice.refresh_token}"))


def test_unknown_or_inactive_subject(gate, codec, repository, alice) -> None:
    ghost = codec.issue(TokenPurpose.access, "no-such-user")
    with pytest.raises(Unauthorized, match="User not found or inactive"):
        run(gate.authenticate(f"Bearer {ghost}"))

    run(repository.update(alice.user.id, {"is_active": False}))
    with pytest.raises(Unauthorized, match="User not found or inactive"):
        run(gate.authenticate(f"Bearer {alice.access_token}"))


def test_optional_authenticate_never_fails(gate, alice) -> None:
    assert run(gate.optional_authenticate(None)) is None
    assert run(gate.optional_authenticate("Bearer junk")) is None
    assert run(gate.optional_authenticate(f"Bearer {alice.access_token}")).id == alice.user.id


def _identity(role: Role, user_id: str = "u1") -> Identity:
    return Identity(id=user_id, email=f"{user_id}@example.com", role=role)


def test_authorize_checks_roles() -> None:
    admin = _identity(Role.admin)
    assert AuthorizationGate.authorize(admin, [Role.admin]) is admin
    assert AuthorizationGate.authorize(_identity(Role.user), []).role is Role.user

    with pytest.raises(Forbidden, match="Insufficient permissions"):
        AuthorizationGate.authorize(_identity(Role.user), [Role.admin, Role.recruiter])
    with pytest.raises(Unauthorized, match="Authentication required"):
        AuthorizationGate.authorize(None, [Role.admin])


def test_can_access_owner_or_admin() -> None:
    assert can_access(_identity(Role.user, "u1"), "u1")
    assert not can_access(_identity(Role.user, "u1"), "u2")
    assert can_access(_identity(Role.admin, "u1"), "u2")
