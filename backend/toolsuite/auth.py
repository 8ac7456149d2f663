"""Password hashing, credential checks and request identity dependencies."""
from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Optional

import bcrypt
from fastapi import Header, HTTPException, status

from .schemas import MAX_PASSWORD_BYTES, User, UserRole

if TYPE_CHECKING:
    from .storage import Storage

logger = logging.getLogger(__name__)

DEFAULT_BCRYPT_ROUNDS = 10
MIN_BCRYPT_ROUNDS = 4
MAX_BCRYPT_ROUNDS = 31


def get_bcrypt_rounds() -> int:
    raw = os.environ.get("TOOLSUITE_BCRYPT_ROUNDS", str(DEFAULT_BCRYPT_ROUNDS))
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"TOOLSUITE_BCRYPT_ROUNDS must be an integer, got {raw!r}") from exc


class PasswordHasher:
    """Salted one-way password hashing backed by bcrypt."""

    def __init__(self, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> None:
        if not MIN_BCRYPT_ROUNDS <= rounds <= MAX_BCRYPT_ROUNDS:
            raise ValueError(
                f"bcrypt rounds must be between {MIN_BCRYPT_ROUNDS} and {MAX_BCRYPT_ROUNDS}, got {rounds}"
            )
        self.rounds = rounds
        self._dummy_hash: Optional[str] = None

    @property
    def dummy_hash(self) -> str:
        """A digest at this hasher's cost, checked against when no account matches."""
        if self._dummy_hash is None:
            self._dummy_hash = self.hash("toolsuite-no-such-account")
        return self._dummy_hash

    def hash(self, password: str) -> str:
        encoded = password.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        encoded = password.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            return False
        try:
            return bcrypt.checkpw(encoded, password_hash.encode("utf-8"))
        except ValueError:
            logger.warning("Stored password hash is not a valid bcrypt digest")
            return False


def authenticate(storage: "Storage", email: str, password: str) -> Optional[User]:
    """Return the user owning ``email`` if ``password`` matches.

    Unknown emails and wrong passwords both yield ``None`` so callers cannot
    tell which accounts exist. A miss still pays for one bcrypt check so the
    response time does not reveal it either.
    """

    user = storage.get_user_by_email(email)
    if user is None:
        storage.hasher.verify(password, storage.hasher.dummy_hash)
        return None
    if not storage.hasher.verify(password, user.password_hash):
        return None
    return user


def require_admin(user_role: Optional[str] = Header(None)) -> None:
    if user_role != UserRole.ADMIN.value:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")


def require_user_id(user_id: Optional[str] = Header(None)) -> str:
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user_id
