"""
User registration and login.

Passwords are stored as Argon2id hashes; the plaintext never reaches the
database.
"""

import logging
import uuid
from typing import List, Optional

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from database import EntityStore, now_ms
from errors import Conflict, InvalidInput, NotFound, Unauthenticated
from schemas import RegisterRequest, User, UserRole

COLLECTION = "user"

password_hasher = PasswordHasher()


def hash_password(password: str) -> str:
    return password_hasher.hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    try:
        return password_hasher.verify(password_hash, password)
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False


class AuthService:
    def __init__(self, store: EntityStore, logger: Optional[logging.Logger] = None):
        self.store = store
        self.log = logger or logging.getLogger(__name__)

    def authenticate(self, username: Optional[str], password: Optional[str]) -> User:
        if not username or not password:
            raise Unauthenticated("Invalid credentials")
        doc = self.store.find_one(COLLECTION, {"username": username})
        if not doc or not verify_password(doc.get("password_hash", ""), password):
            self.log.info("Failed login for %r", username)
            raise Unauthenticated("Invalid credentials")
        if doc.get("role") == UserRole.SUSPENDED.value:
            raise Unauthenticated("Account suspended")

        if password_hasher.check_needs_rehash(doc["password_hash"]):
            self.store.update(COLLECTION, doc["id"], {"password_hash": hash_password(password)})
        return User.model_validate(doc)

    def register(self, req: RegisterRequest) -> User:
        required = {
            "username": req.username,
            "password": req.password,
            "fullName": req.full_name,
            "email": req.email,
            "phone": req.phone,
        }
        missing = [k for k, v in required.items() if not v or not v.strip()]
        if missing:
            raise InvalidInput(f"Missing required fields: {', '.join(missing)}")

        if self.store.exists(COLLECTION, {"username": req.username}):
            raise Conflict("Username already exists")
        if self.store.exists(COLLECTION, {"email": req.email}):
            raise Conflict("Email already exists")
        if self.store.exists(COLLECTION, {"phone": req.phone}):
            raise Conflict("Phone already exists")

        user = User(
            id="CUS-" + uuid.uuid4().hex[:12].upper(),
            username=req.username,
            name=req.full_name,
            email=req.email,
            phone=req.phone,
            role=UserRole.CUSTOMER,
            order_count=0,
            created_at=now_ms(),
        )
        doc = user.model_dump(mode="json", exclude={"id"})
        doc["password_hash"] = hash_password(req.password)
        try:
            # the unique indexes settle registrations that race past the checks above
            self.store.create(COLLECTION, doc, doc_id=user.id)
        except Conflict as e:
            raise Conflict("Username, email or phone already exists") from e
        self.log.info("Registered customer %s (%s)", user.username, user.id)
        return user

    def list_users(self) -> List[User]:
        return [User.model_validate(d) for d in self.store.find(COLLECTION)]

    def set_role(self, user_id: str, role: UserRole) -> User:
        doc = self.store.update(COLLECTION, user_id, {"role": role.value})
        if doc is None:
            raise NotFound(f"User not found: {user_id}")
        return User.model_validate(doc)
