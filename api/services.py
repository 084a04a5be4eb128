"""
api/services.py -- Business logic for the user account endpoints.

Every service returns a (status_code, payload) pair. Route handlers only turn
that pair into a JSONResponse; all decisions about which status to send live
here, which keeps the rules testable without an HTTP client.

Error payloads use the same {"error": {"code", "message"}} envelope the app's
exception handlers produce, so clients parse one shape regardless of which
layer rejected the request.

bcrypt work is pushed to the threadpool with run_in_threadpool() so a slow
hash suspends only the request that needs it.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from starlette.concurrency import run_in_threadpool

from api.models import ErrorDetail, ErrorResponse, LoginRequest, LoginResponse, UserCreate, UserPatch, UserResponse
from auth.models import Identity, User
from auth.store import DuplicateEmailError, UserRepository
from auth.tokens import authenticate_user, create_access_token, hash_password

logger = logging.getLogger("useraccounts.api")

ServiceResult = tuple[int, Any]

_ADMIN_FLAG_KEYS = frozenset({"isAdmin", "isAdm", "is_admin"})
_READ_ONLY_KEYS = frozenset({"uuid", "id", "createdAt", "updatedAt", "created_at", "updated_at"})

# One message for unknown email and wrong password -- no account enumeration.
_BAD_CREDENTIALS = "Wrong email/password"


def _error(status: int, code: str, message: str) -> ServiceResult:
    return status, ErrorResponse(error=ErrorDetail(code=code, message=message)).model_dump(exclude_none=True)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _public(user: User) -> dict:
    return UserResponse.from_user(user).to_json()


async def register_user(store: UserRepository, body: UserCreate) -> ServiceResult:
    """Create an account. 201 with the public user, or 409 if the email is taken."""
    if store.find_by_email(body.email) is not None:
        return _error(409, "email_taken", "Email already registered")

    now = _now()
    user = User(
        id=str(uuid.uuid4()),
        email=body.email,
        hashed_password=await run_in_threadpool(hash_password, body.password),
        age=body.age,
        is_admin=body.is_admin,
        created_at=now,
        updated_at=now,
    )
    try:
        # The store re-checks under its own lock; a concurrent registration
        # may have won the race while we were hashing.
        created = store.insert(user)
    except DuplicateEmailError:
        return _error(409, "email_taken", "Email already registered")

    logger.info("Registered user %s (admin=%s)", created.id, created.is_admin)
    return 201, _public(created)


async def login_user(store: UserRepository, body: LoginRequest) -> ServiceResult:
    """Exchange email/password for a signed token. 401 on any mismatch."""
    user = await run_in_threadpool(authenticate_user, store, body.email, body.password)
    if user is None:
        logger.info("Failed login attempt")
        return _error(401, "bad_credentials", _BAD_CREDENTIALS)

    token = create_access_token(user.id, user.age, user.is_admin)
    return 200, LoginResponse(token=token).model_dump()


def list_users(store: UserRepository) -> ServiceResult:
    """Every stored user, in registration order."""
    return 200, [_public(u) for u in store.list_all()]


def get_profile(user: User) -> ServiceResult:
    return 200, _public(user)


async def update_user(
    store: UserRepository,
    identity: Identity,
    body: UserPatch,
    target_id: str,
    success_status: int = 200,
) -> ServiceResult:
    """Merge a partial update into target_id's record.

    Field checks come before the permission check: an isAdmin key is refused
    for every caller, admins included. Only the owner of the record or an
    admin may update it.
    """
    extra = set(body.model_extra or {})
    if extra & _ADMIN_FLAG_KEYS:
        return _error(400, "admin_flag_immutable", "isAdmin cannot be updated")
    if extra & _READ_ONLY_KEYS:
        return _error(400, "read_only_field", f"Read-only field(s): {', '.join(sorted(extra & _READ_ONLY_KEYS))}")
    if extra:
        return _error(400, "unknown_field", f"Unknown field(s): {', '.join(sorted(extra))}")

    if identity.id != target_id:
        caller = store.find_by_id(identity.id)
        if caller is None or not caller.is_admin:
            logger.warning("User %s denied update of user %s", identity.id, target_id)
            return _error(403, "forbidden", "missing admin permissions")

    # age may be explicitly cleared with null; email and password may not.
    fields: dict[str, Any] = {
        k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None or k == "age"
    }
    if "password" in fields:
        fields["hashed_password"] = await run_in_threadpool(hash_password, fields.pop("password"))
    fields["updated_at"] = _now()

    try:
        updated = store.update(target_id, **fields)
    except DuplicateEmailError:
        return _error(409, "email_taken", "Email already registered")
    if updated is None:
        return _error(404, "not_found", "User not found")

    return success_status, _public(updated)


def delete_user(store: UserRepository, caller_id: str, target_id: str) -> ServiceResult:
    """Delete target_id. Self-deletion is always allowed; anything else needs admin.

    A missing target is a 404 on both paths.
    """
    if caller_id != target_id:
        caller = store.find_by_id(caller_id)
        if caller is None or not caller.is_admin:
            logger.warning("User %s denied delete of user %s", caller_id, target_id)
            return _error(403, "forbidden", "missing admin permissions")

    if not store.delete(target_id):
        return _error(404, "not_found", "User not found")

    logger.info("User %s deleted by %s", target_id, caller_id)
    return 204, None
