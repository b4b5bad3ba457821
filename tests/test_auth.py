from datetime import datetime, timedelta

import pytest
from fastapi import HTTPException

from sahar.auth import AuthService, SessionRegistry
from sahar.config import SessionConfig
from sahar.models import UserAccount
from sahar.validation import ValidationError

T0 = datetime(2024, 5, 1, 8, 0)


@pytest.fixture
def user():
    return UserAccount(id=7, email="mona@sahar.local", password_hash="x", display_name="Mona", role="manager")


def test_session_refreshes_while_valid(user):
    reg = SessionRegistry("k", SessionConfig(ttl_hours=24, refresh_minutes=60))
    ctx = reg.open(user, now=T0)

    # inside the refresh interval: untouched
    assert reg.get(ctx.token, now=T0 + timedelta(minutes=30)).refreshed_at == T0
    later = T0 + timedelta(hours=2)
    assert reg.get(ctx.token, now=later).refreshed_at == later
    # measured from the last refresh, not from login
    assert reg.get(ctx.token, now=later + timedelta(hours=23)) is not None


def test_expired_session_is_dropped(user):
    reg = SessionRegistry("k", SessionConfig(ttl_hours=1, refresh_minutes=60))
    ctx = reg.open(user, now=T0)
    assert reg.get(ctx.token, now=T0 + timedelta(hours=2)) is None
    assert reg.get(ctx.token, now=T0) is None


def test_refresh_does_not_revive(user):
    ctx = SessionRegistry("k").open(user, now=T0)
    assert not ctx.refresh(T0 + timedelta(days=2))
    assert ctx.refreshed_at == T0


def test_forged_token_rejected(user):
    reg = SessionRegistry("k")
    reg.open(user, now=T0)
    other = SessionRegistry("another-key").open(user, now=T0)
    assert reg.get(other.token) is None
    assert reg.get("garbage") is None


def test_roles(user):
    ctx = SessionRegistry("k").open(user)
    assert ctx.has_role("user") and ctx.has_role("manager")
    assert not ctx.has_role("admin")


def test_sign_in(backend, users):
    svc = AuthService(backend, SessionRegistry("k"))
    ctx = svc.sign_in("admin@sahar.local", "admin123")
    assert ctx.role == "admin"
    assert svc.sign_out(ctx.token)
    assert not svc.sign_out(ctx.token)


@pytest.mark.parametrize("email,password", [
    ("", "admin123"),
    ("not-an-email", "admin123"),
    ("admin@sahar.local", ""),
    ("admin@sahar.local", "123"),
])
def test_sign_in_validation_before_lookup(backend, email, password):
    with pytest.raises(ValidationError):
        AuthService(backend, SessionRegistry("k")).sign_in(email, password)


def test_sign_in_bad_password(backend, users):
    with pytest.raises(HTTPException) as exc:
        AuthService(backend, SessionRegistry("k")).sign_in("admin@sahar.local", "wrong-password")
    assert exc.value.status_code == 401
