"""Unit tests for api/services.py -- the (status, payload) business rules.

Services are called directly (async ones through asyncio.run) against an
InMemoryUserStore, so every rule is checked without HTTP in the way.

Covers:
- register: 201 public payload, 409 on duplicate, hash stored not plaintext
- login: generic 401 for both failure modes, token decodes to the user
- update: field checks precede permission checks, password re-hash,
  success_status passthrough, 404 for a missing target
- delete: self path, admin path, forbidden path, missing target on both paths
"""

import asyncio

from api import services
from api.models import LoginRequest, UserCreate, UserPatch
from auth.models import Identity
from auth.tokens import decode_access_token, verify_password


def _register(store, email="a@x.com", password="pw", **extra):
    return asyncio.run(services.register_user(store, UserCreate(email=email, password=password, **extra)))


class TestRegister:
    def test_created_payload(self, store):
        status, payload = _register(store, age=7)
        assert status == 201
        assert set(payload) == {"uuid", "email", "age", "isAdmin", "createdAt", "updatedAt"}

    def test_password_is_hashed(self, store):
        _, payload = _register(store, password="plaintext")
        stored = store.find_by_id(payload["uuid"])
        assert stored.hashed_password != "plaintext"
        assert verify_password("plaintext", stored.hashed_password)

    def test_duplicate(self, store):
        _register(store)
        status, payload = _register(store)
        assert status == 409
        assert payload == {"error": {"code": "email_taken", "message": "Email already registered"}}


class TestLogin:
    def test_token_identifies_user(self, store):
        _, created = _register(store, age=40, isAdmin=True)
        status, payload = asyncio.run(services.login_user(store, LoginRequest(email="a@x.com", password="pw")))
        assert status == 200
        assert decode_access_token(payload["token"]) == Identity(id=created["uuid"], age=40, is_admin=True)

    def test_failures_are_indistinguishable(self, store):
        _register(store)
        bad_pw = asyncio.run(services.login_user(store, LoginRequest(email="a@x.com", password="no")))
        unknown = asyncio.run(services.login_user(store, LoginRequest(email="b@x.com", password="pw")))
        assert bad_pw == unknown
        assert bad_pw[0] == 401


class TestUpdate:
    def _update(self, store, identity, body: dict, target, **kwargs):
        return asyncio.run(services.update_user(store, identity, UserPatch(**body), target, **kwargs))

    def test_admin_flag_refused_before_permission_check(self, store, make_user):
        user, _ = make_user("a@x.com")
        stranger = Identity(id="someone-else")
        status, payload = self._update(store, stranger, {"isAdmin": True}, user.id)
        assert status == 400
        assert payload["error"]["code"] == "admin_flag_immutable"

    def test_legacy_admin_key_refused(self, store, make_user):
        user, _ = make_user("a@x.com")
        status, _ = self._update(store, Identity(id=user.id), {"isAdm": False}, user.id)
        assert status == 400

    def test_unknown_field(self, store, make_user):
        user, _ = make_user("a@x.com")
        status, payload = self._update(store, Identity(id=user.id), {"nickname": "z"}, user.id)
        assert status == 400
        assert payload["error"]["code"] == "unknown_field"

    def test_forbidden_for_non_owner(self, store, make_user):
        user, _ = make_user("a@x.com")
        other, _ = make_user("b@x.com")
        status, _ = self._update(store, Identity(id=other.id), {"age": 1}, user.id)
        assert status == 403
        assert store.find_by_id(user.id).age is None

    def test_token_admin_claim_not_trusted(self, store, make_user):
        user, _ = make_user("a@x.com")
        other, _ = make_user("b@x.com")
        status, _ = self._update(store, Identity(id=other.id, is_admin=True), {"age": 1}, user.id)
        assert status == 403

    def test_password_rehashed(self, store, make_user):
        user, _ = make_user("a@x.com", password="old")
        status, payload = self._update(store, Identity(id=user.id), {"password": "new"}, user.id)
        assert status == 200
        assert "password" not in payload
        assert verify_password("new", store.find_by_id(user.id).hashed_password)

    def test_null_email_ignored(self, store, make_user):
        user, _ = make_user("a@x.com", age=5)
        status, payload = self._update(store, Identity(id=user.id), {"email": None, "age": None}, user.id)
        assert status == 200
        assert payload["email"] == "a@x.com"
        assert payload["age"] is None

    def test_updated_at_refreshed(self, store, make_user):
        user, _ = make_user("a@x.com")
        self._update(store, Identity(id=user.id), {}, user.id)
        assert store.find_by_id(user.id).updated_at > user.updated_at

    def test_success_status_passthrough(self, store, make_user):
        user, _ = make_user("a@x.com")
        status, _ = self._update(store, Identity(id=user.id), {"age": 2}, user.id, success_status=201)
        assert status == 201

    def test_self_update_of_deleted_record_is_404(self, store, make_user):
        user, _ = make_user("a@x.com")
        store.delete(user.id)
        status, _ = self._update(store, Identity(id=user.id), {"age": 2}, user.id)
        assert status == 404


class TestDelete:
    def test_self(self, store, make_user):
        user, _ = make_user("a@x.com")
        assert services.delete_user(store, user.id, user.id) == (204, None)

    def test_admin_other(self, store, make_user):
        admin, _ = make_user("admin@x.com", is_admin=True)
        user, _ = make_user("a@x.com")
        assert services.delete_user(store, admin.id, user.id) == (204, None)

    def test_non_admin_other(self, store, make_user):
        user, _ = make_user("a@x.com")
        other, _ = make_user("b@x.com")
        status, payload = services.delete_user(store, user.id, other.id)
        assert status == 403
        assert payload["error"]["message"] == "missing admin permissions"

    def test_missing_target_self_path(self, store):
        status, payload = services.delete_user(store, "gone", "gone")
        assert status == 404
        assert payload["error"]["code"] == "not_found"

    def test_missing_target_admin_path(self, store, make_user):
        admin, _ = make_user("admin@x.com", is_admin=True)
        status, _ = services.delete_user(store, admin.id, "gone")
        assert status == 404

    def test_missing_target_non_admin_is_forbidden_not_404(self, store, make_user):
        user, _ = make_user("a@x.com")
        status, _ = services.delete_user(store, user.id, "gone")
        assert status == 403
