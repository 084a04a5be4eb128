"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Guards run as an explicit, ordered chain:

  authenticate        -- Authorization: Bearer <token> must be present and valid.
  ensure_user_exists  -- the token subject must still have a stored record.
  ensure_admin        -- the stored record must carry is_admin.

authenticate() always runs first and produces an AuthContext. Each further
guard takes (request, context) and returns the context it passes on, or
raises HTTPException to end the request. guard_chain() builds the FastAPI
dependency for a given sequence, so routes declare exactly which checks they
need:

    @router.get("/users")
    async def route(ctx: AuthContext = Depends(require_admin)): ...

Admin decisions read the stored record, never the isAdmin claim in the token,
so a stale token cannot outlive a deleted account.

Layer rule: no imports from api/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace

from fastapi import HTTPException, Request

from auth.models import Identity, User
from auth.store import UserRepository
from auth.tokens import decode_access_token

logger = logging.getLogger("useraccounts.auth")


@dataclass(frozen=True)
class AuthContext:
    """What the guard chain knows about the caller so far."""

    identity: Identity
    user: User | None = None


Guard = Callable[[Request, AuthContext], AuthContext]


def _store(request: Request) -> UserRepository:
    return request.app.state.user_store


def authenticate(request: Request) -> AuthContext:
    """Decode the bearer token into an AuthContext. Raises HTTP 401 on failure."""
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise HTTPException(
            status_code=401,
            detail={"code": "missing_token", "message": "Missing authorization headers"},
        )

    scheme, _, token = auth_header.partition(" ")
    identity = decode_access_token(token.strip()) if scheme.lower() == "bearer" and token.strip() else None
    if identity is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "invalid_token", "message": "Invalid token"},
        )
    return AuthContext(identity=identity)


def ensure_user_exists(request: Request, ctx: AuthContext) -> AuthContext:
    """Attach the caller's stored record. Raises HTTP 404 if it is gone.

    The message is deliberately the same one login uses, so it reveals
    nothing about which credential was wrong.
    """
    user = _store(request).find_by_id(ctx.identity.id)
    if user is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "Wrong email/password"},
        )
    return replace(ctx, user=user)


def ensure_admin(request: Request, ctx: AuthContext) -> AuthContext:
    """Require the caller's stored record to be an admin. Raises HTTP 403 otherwise."""
    user = ctx.user if ctx.user is not None else _store(request).find_by_id(ctx.identity.id)
    if user is None or not user.is_admin:
        logger.warning("Admin check denied for user %s on %s", ctx.identity.id, request.url.path)
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "missing admin permissions"},
        )
    return replace(ctx, user=user)


def guard_chain(*guards: Guard) -> Callable[[Request], AuthContext]:
    """Compose authenticate() followed by guards into one FastAPI dependency."""

    def dependency(request: Request) -> AuthContext:
        ctx = authenticate(request)
        for guard in guards:
            ctx = guard(request, ctx)
        return ctx

    return dependency


require_auth = guard_chain()
require_existing_user = guard_chain(ensure_user_exists)
require_admin = guard_chain(ensure_admin)
