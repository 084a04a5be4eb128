"""
api/routes/auth.py -- Login endpoint.

Routes:
  POST /login -- email/password login; returns a bearer JWT

Security:
  [C1] authenticate_user() (via services.login_user) provides timing
       equalization -- never inline find_by_email() + verify_password().
  [M5] Cache-Control: no-store on login responses so tokens are not cached.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api import services
from api.models import LoginRequest, LoginResponse
from auth.store import UserRepository

router = APIRouter()


@router.post("/login", response_model=LoginResponse)
async def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password.

    Returns the same generic error for an unknown email and a wrong password
    ("bad_credentials") to avoid leaking which accounts exist.
    """
    user_store: UserRepository = request.app.state.user_store
    status, payload = await services.login_user(user_store, body)
    resp = JSONResponse(status_code=status, content=payload)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp
