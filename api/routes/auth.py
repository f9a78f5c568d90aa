"""
api/routes/auth.py -- The five authentication endpoints.

Routes:
  POST /signup        -- create an account; 201 | 400 | 409 | 422
  POST /login         -- 200 + jwt cookie, or 206 + loginAttemptId when 2FA is on
  POST /verify-2fa    -- exchange attempt id + emailed code for a jwt cookie
  POST /logout        -- revoke the cookie's token and clear the cookie
  POST /verify-token  -- 200 if the token is valid, 401 otherwise

Handlers are thin: parse the JSON body (pydantic, 422 on a missing field),
call AuthService, and translate the result into a response. Every failure is
an AuthAPIError raised by the service and rendered by the exception handler
in api/main.py, so no handler builds an error body itself.

Handlers are plain `def` functions. FastAPI runs them in its threadpool, so
concurrent requests proceed in parallel against the shared stores.

Security:
  Cache-Control: no-store on every response that sets or clears a session.
  The 206 body carries the login attempt id only, never the code.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from api.models import (
    LoginRequest,
    MessageResponse,
    SignupRequest,
    TwoFactorAuthResponse,
    Verify2FARequest,
    VerifyTokenRequest,
)
from auth.dependencies import get_app_settings, get_auth_service, read_session_token
from auth.service import AuthService
from auth.tokens import clear_auth_cookie, set_auth_cookie
from core.config import Settings

router = APIRouter()


@router.post("/signup", status_code=201, response_model=MessageResponse)
def signup(body: SignupRequest, service: AuthService = Depends(get_auth_service)) -> JSONResponse:
    service.signup(body.email, body.password, body.requires_2fa)
    return JSONResponse(
        status_code=201,
        content=MessageResponse(message="User created successfully!").model_dump(),
    )


@router.post("/login")
def login(
    body: LoginRequest,
    service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_app_settings),
) -> JSONResponse:
    """Check credentials; either open a session or issue a 2FA challenge."""
    result = service.login(body.email, body.password)
    if result.requires_2fa:
        resp = JSONResponse(
            status_code=206,
            content=TwoFactorAuthResponse(login_attempt_id=result.login_attempt_id.value).model_dump(by_alias=True),
        )
    else:
        resp = JSONResponse(status_code=200, content=MessageResponse(message="Login successful").model_dump())
        set_auth_cookie(resp, result.token, settings)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/verify-2fa")
def verify_2fa(
    body: Verify2FARequest,
    service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_app_settings),
) -> JSONResponse:
    token = service.verify_2fa(body.email, body.login_attempt_id, body.two_fa_code)
    resp = JSONResponse(status_code=200, content=MessageResponse(message="Login successful").model_dump())
    set_auth_cookie(resp, token, settings)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/logout")
def logout(
    token: str | None = Depends(read_session_token),
    service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_app_settings),
) -> JSONResponse:
    """Revoke the session token carried in the jwt cookie, then delete the cookie."""
    service.logout(token)
    resp = JSONResponse(status_code=200, content=MessageResponse(message="Logged out.").model_dump())
    clear_auth_cookie(resp, settings)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/verify-token")
def verify_token(body: VerifyTokenRequest, service: AuthService = Depends(get_auth_service)) -> JSONResponse:
    service.verify_token(body.token)
    return JSONResponse(status_code=200, content=MessageResponse(message="Token is valid.").model_dump())
