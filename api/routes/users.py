"""
api/routes/users.py -- User account REST endpoints.

Routes:
  POST   /users           -- register (public)
  GET    /users           -- list all users (admin only)
  GET    /users/profile   -- the caller's own record (requires auth + existing record)
  PATCH  /users/{user_id} -- partial update (requires auth; owner or admin)
  DELETE /users/{user_id} -- delete (requires auth; owner or admin)

Handlers are thin: pick the guard chain, call the service, wrap its
(status, payload) pair in a response. /users/profile is declared before the
/{user_id} routes so "profile" is never captured as an id.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from api import services
from api.models import UserCreate, UserPatch, UserResponse
from auth.dependencies import AuthContext, require_admin, require_auth, require_existing_user
from auth.store import UserRepository
from core.config import get_settings

router = APIRouter()


def _respond(status: int, payload) -> Response:
    if status == 204:
        return Response(status_code=204)
    return JSONResponse(status_code=status, content=payload)


@router.post("/users", response_model=UserResponse, status_code=201)
async def create_user(request: Request, body: UserCreate) -> Response:
    """Register a new account. The password is hashed before storage and never returned."""
    user_store: UserRepository = request.app.state.user_store
    return _respond(*await services.register_user(user_store, body))


@router.get("/users", response_model=list[UserResponse])
async def list_users(request: Request, ctx: AuthContext = Depends(require_admin)) -> Response:
    """List every account. Admin only."""
    user_store: UserRepository = request.app.state.user_store
    return _respond(*services.list_users(user_store))


@router.get("/users/profile", response_model=UserResponse)
async def profile(ctx: AuthContext = Depends(require_existing_user)) -> Response:
    """Return the caller's own record."""
    return _respond(*services.get_profile(ctx.user))


@router.patch("/users/{user_id}", response_model=UserResponse)
async def update_user(
    request: Request,
    user_id: str,
    body: UserPatch,
    ctx: AuthContext = Depends(require_auth),
) -> Response:
    """Update email, password, or age. isAdmin can never be changed here."""
    user_store: UserRepository = request.app.state.user_store
    success_status = 201 if get_settings().legacy_update_status else 200
    return _respond(*await services.update_user(user_store, ctx.identity, body, user_id, success_status))


@router.delete("/users/{user_id}", status_code=204)
async def delete_user(
    request: Request,
    user_id: str,
    ctx: AuthContext = Depends(require_auth),
) -> Response:
    """Delete an account. Anyone may delete themselves; deleting others needs admin."""
    user_store: UserRepository = request.app.state.user_store
    return _respond(*services.delete_user(user_store, ctx.identity.id, user_id))
