# sahar/auth.py
"""
Sign-in and the per-login session context.

A SessionContext is created on login, refreshed while it is still valid
(at most once per refresh interval), and torn down on logout or once it
has been idle longer than the TTL. Components receive it through the
`current_session` dependency instead of reading shared state.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Annotated, Dict, Optional

from fastapi import Depends, HTTPException, Request
from itsdangerous import BadSignature, URLSafeTimedSerializer
from werkzeug.security import check_password_hash

from .backend import Backend
from .config import CONFIG, SessionConfig
from .models import UserAccount
from .validation import ValidationError, is_email, is_required

log = logging.getLogger("sahar.auth")

ROLE_LEVELS = {"admin": 3, "manager": 2, "user": 1}
COOKIE_NAME = "sahar_session"


@dataclass
class SessionContext:
    token: str
    user_id: int
    email: str
    display_name: Optional[str]
    role: str
    started_at: datetime
    refreshed_at: datetime
    ttl: timedelta = field(default=timedelta(hours=24))

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now()
        return now - self.refreshed_at <= self.ttl

    def refresh(self, now: Optional[datetime] = None) -> bool:
        """Extend the expiry; an expired session stays expired."""
        now = now or datetime.now()
        if not self.is_valid(now):
            return False
        self.refreshed_at = now
        return True

    def has_role(self, required: str) -> bool:
        return ROLE_LEVELS.get(self.role, 0) >= ROLE_LEVELS.get(required, 99)

    def to_dict(self) -> dict:
        return {
            "user": {"id": self.user_id, "email": self.email, "name": self.display_name},
            "role": self.role,
            "started_at": self.started_at.isoformat(),
            "expires_at": (self.refreshed_at + self.ttl).isoformat(),
        }


class SessionRegistry:
    def __init__(self, secret_key: str = CONFIG.secret_key, cfg: SessionConfig = CONFIG.session) -> None:
        self.cfg = cfg
        self.serializer = URLSafeTimedSerializer(secret_key, salt="sahar-session")
        self._sessions: Dict[str, SessionContext] = {}
        self._lock = threading.Lock()

    @property
    def ttl(self) -> timedelta:
        return timedelta(hours=self.cfg.ttl_hours)

    def open(self, user: UserAccount, now: Optional[datetime] = None) -> SessionContext:
        now = now or datetime.now()
        token = self.serializer.dumps({"uid": user.id, "t": now.timestamp()})
        ctx = SessionContext(
            token=token,
            user_id=int(user.id),
            email=user.email,
            display_name=user.display_name,
            role=user.role or "user",
            started_at=now,
            refreshed_at=now,
            ttl=self.ttl,
        )
        with self._lock:
            self._sessions[token] = ctx
        return ctx

    def get(self, token: Optional[str], now: Optional[datetime] = None) -> Optional[SessionContext]:
        if not token:
            return None
        try:
            self.serializer.loads(token)
        except BadSignature:
            return None
        now = now or datetime.now()
        with self._lock:
            ctx = self._sessions.get(token)
            if ctx is None:
                return None
            if not ctx.is_valid(now):
                self._sessions.pop(token, None)
                log.info("session of %s expired", ctx.email)
                return None
            if now - ctx.refreshed_at >= timedelta(minutes=self.cfg.refresh_minutes):
                ctx.refresh(now)
            return ctx

    def close(self, token: Optional[str]) -> bool:
        with self._lock:
            return self._sessions.pop(token or "", None) is not None


class AuthService:
    def __init__(self, backend: Backend, registry: SessionRegistry) -> None:
        self.backend = backend
        self.registry = registry

    def sign_in(self, email: str, password: str) -> SessionContext:
        if not is_required(email):
            raise ValidationError("Email is required")
        if not is_email(email):
            raise ValidationError("Please enter a valid email address")
        if not is_required(password):
            raise ValidationError("Password is required")
        if len(password) < 6:
            raise ValidationError("Password must be at least 6 characters")

        user = self.backend.first(UserAccount, UserAccount.email == email.strip().lower())
        if user is None or not check_password_hash(user.password_hash, password):
            log.warning("failed login for %s", email)
            raise HTTPException(status_code=401, detail="Invalid login credentials")
        ctx = self.registry.open(user)
        log.info("login %s (%s)", user.email, ctx.role)
        return ctx

    def sign_out(self, token: Optional[str]) -> bool:
        return self.registry.close(token)


# --- FastAPI dependencies ---------------------------------------------------------

registry = SessionRegistry()


def get_registry() -> SessionRegistry:
    return registry


def token_from_request(request: Request) -> Optional[str]:
    h = request.headers.get("Authorization") or ""
    if h.lower().startswith("bearer "):
        return h[7:].strip()
    return request.cookies.get(COOKIE_NAME)


def current_session(
    request: Request,
    reg: Annotated[SessionRegistry, Depends(get_registry)],
) -> SessionContext:
    ctx = reg.get(token_from_request(request))
    if ctx is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return ctx


def require_role(role: str):
    def _dep(ctx: Annotated[SessionContext, Depends(current_session)]) -> SessionContext:
        if not ctx.has_role(role):
            raise HTTPException(status_code=403, detail=f"{role} role required")
        return ctx
    return _dep


SessionCtxDep = Annotated[SessionContext, Depends(current_session)]
ManagerDep = Annotated[SessionContext, Depends(require_role("manager"))]
