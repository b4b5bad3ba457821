# sahar/views_auth.py
from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import JSONResponse

from .auth import COOKIE_NAME, AuthService, SessionCtxDep, SessionRegistry, get_registry, token_from_request
from .db import BackendDep

router = APIRouter(prefix="/auth", tags=["auth"])

RegistryDep = Annotated[SessionRegistry, Depends(get_registry)]


@router.post("/login")
def auth_login(backend: BackendDep, reg: RegistryDep, email: str = Form(""), password: str = Form("")):
    ctx = AuthService(backend, reg).sign_in(email, password)
    resp = JSONResponse({"ok": True, "token": ctx.token, **ctx.to_dict()})
    resp.set_cookie(
        COOKIE_NAME,
        ctx.token,
        httponly=True,
        samesite="lax",
        max_age=int(reg.ttl.total_seconds()),
    )
    return resp


@router.get("/session")
def auth_session(ctx: SessionCtxDep):
    return ctx.to_dict()


@router.post("/logout")
def auth_logout(request: Request, backend: BackendDep, reg: RegistryDep):
    closed = AuthService(backend, reg).sign_out(token_from_request(request))
    resp = JSONResponse({"ok": True, "closed": closed})
    resp.delete_cookie(COOKIE_NAME)
    return resp
