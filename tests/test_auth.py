"""
Registration, login and password hashing.
"""

import pytest

from auth import AuthService, hash_password, verify_password
from errors import Conflict, InvalidInput, Unauthenticated
from schemas import RegisterRequest, UserRole

REGISTRATION = {
    "username": "linh",
    "password": "s3cret-pass",
    "fullName": "Tran Thi Linh",
    "email": "linh@example.com",
    "phone": "0901234567",
}


def register(auth, **overrides):
    data = dict(REGISTRATION)
    data.update(overrides)
    return auth.register(RegisterRequest.model_validate(data))


class TestPasswordHashing:

    def test_hash_verifies(self):
        hashed = hash_password("hunter2")
        assert hashed != "hunter2"
        assert hashed.startswith("$argon2")
        assert verify_password(hashed, "hunter2")

    def test_wrong_password(self):
        assert not verify_password(hash_password("hunter2"), "hunter3")

    def test_garbage_hash(self):
        assert not verify_password("not-a-hash", "hunter2")


class TestAuthService:

    def test_register_stores_hash_only(self, store):
        auth = AuthService(store)
        user = register(auth)
        assert user.id.startswith("CUS-")
        assert user.role == UserRole.CUSTOMER
        doc = store.get("user", user.id)
        assert "password" not in doc
        assert verify_password(doc["password_hash"], "s3cret-pass")

    def test_missing_fields(self, store):
        with pytest.raises(InvalidInput):
            register(AuthService(store), email="  ")

    @pytest.mark.parametrize("field", ["email", "phone"])
    def test_duplicate_contact(self, store, field):
        auth = AuthService(store)
        register(auth)
        other = {"username": "someone-else", "email": "x@example.com", "phone": "0999999999"}
        other[field] = REGISTRATION[field]
        with pytest.raises(Conflict):
            register(auth, **other)
        assert store.count("user") == 1

    def test_concurrent_duplicate_username(self, store, monkeypatch):
        auth = AuthService(store)
        register(auth)
        # both registrations passed the existence checks before either insert
        monkeypatch.setattr(store, "exists", lambda *args, **kwargs: False)
        with pytest.raises(Conflict):
            register(auth, email="other@example.com", phone="0988888888")
        assert store.count("user", {"username": "linh"}) == 1

    def test_login(self, store):
        auth = AuthService(store)
        register(auth)
        assert auth.authenticate("linh", "s3cret-pass").username == "linh"
        with pytest.raises(Unauthenticated):
            auth.authenticate("linh", "wrong")
        with pytest.raises(Unauthenticated):
            auth.authenticate("nobody", "s3cret-pass")

    def test_suspended_cannot_login(self, store):
        auth = AuthService(store)
        user = register(auth)
        auth.set_role(user.id, UserRole.SUSPENDED)
        with pytest.raises(Unauthenticated):
            auth.authenticate("linh", "s3cret-pass")


class TestAuthRoutes:

    def test_register_and_login(self, client):
        resp = client.post("/api/auth/register", json=REGISTRATION)
        assert resp.status_code == 201
        body = resp.json()
        assert body["ok"] is True
        assert body["data"]["username"] == "linh"
        assert "password" not in body["data"]

        login = client.post("/api/auth/login", json={"username": "linh", "password": "s3cret-pass"}).json()
        assert login["role"] == "customer"
        assert login["name"] == "Tran Thi Linh"

    def test_duplicate_username(self, client, store):
        client.post("/api/auth/register", json=REGISTRATION)
        again = dict(REGISTRATION, email="other@example.com", phone="0988888888")
        resp = client.post("/api/auth/register", json=again)
        assert resp.status_code == 409
        assert store.count("user") == 1

    def test_bad_login(self, client):
        resp = client.post("/api/auth/login", json={"username": "ghost", "password": "x"})
        assert resp.status_code == 401
        assert resp.json()["error"] == "Unauthenticated"

    def test_users_listing_hides_hashes(self, client):
        client.post("/api/auth/register", json=REGISTRATION)
        users = client.get("/api/auth/users").json()
        assert len(users) == 1
        assert "passwordHash" not in users[0]
