"""Entity store contract and the in-memory backend.

``Storage`` owns the three persisted collections (users, tool usage events and
ad slots). Lookups return ``None`` when nothing matches; uniqueness violations
raise ``DuplicateKeyError``. Records handed to callers are immutable pydantic
models, so no caller can alter stored state through a returned object.
"""
from __future__ import annotations

import abc
import logging
import threading
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

from . import analytics
from .auth import PasswordHasher, authenticate
from .schemas import (
    AdSlot,
    AdSlotCreate,
    AdSlotUpdate,
    AnalyticsSummary,
    ToolUsage,
    ToolUsageCreate,
    User,
    UserCreate,
    UserUpdate,
)

logger = logging.getLogger(__name__)

UNIQUE_USER_FIELDS = ("email", "username")


class DuplicateKeyError(Exception):
    """Raised when a write would give two users the same email or username."""

    def __init__(self, field: str, value: Optional[str] = None) -> None:
        if value is None:
            message = f"A user with this {field} already exists"
        else:
            message = f"A user with {field} {value!r} already exists"
        super().__init__(message)
        self.field = field


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, the form every backend stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class ToolUsageFilters:
    """Optional constraints on a tool usage listing, combined with AND.

    ``date_from`` and ``date_to`` are inclusive. Timezone-aware bounds are
    converted to UTC.
    """

    tool_name: Optional[str] = None
    category: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None

    def normalized(self) -> "ToolUsageFilters":
        return replace(
            self,
            date_from=to_naive_utc(self.date_from) if self.date_from else None,
            date_to=to_naive_utc(self.date_to) if self.date_to else None,
        )

    def matches(self, usage: ToolUsage) -> bool:
        if self.tool_name and usage.tool_name != self.tool_name:
            return False
        if self.category and usage.category != self.category:
            return False
        if self.date_from and usage.timestamp < self.date_from:
            return False
        if self.date_to and usage.timestamp > self.date_to:
            return False
        return True


class Storage(abc.ABC):
    """Create, read, update and delete for users, tool usage and ad slots."""

    def __init__(self, hasher: Optional[PasswordHasher] = None) -> None:
        self.hasher = hasher or PasswordHasher()

    # Users

    @abc.abstractmethod
    def get_user(self, user_id: str) -> Optional[User]:
        ...

    @abc.abstractmethod
    def get_user_by_email(self, email: str) -> Optional[User]:
        ...

    @abc.abstractmethod
    def get_user_by_username(self, username: str) -> Optional[User]:
        ...

    @abc.abstractmethod
    def create_user(self, data: UserCreate) -> User:
        """Store a new user with a hashed password.

        Raises ``DuplicateKeyError`` if the email or username is taken.
        """

    @abc.abstractmethod
    def update_user(self, user_id: str, patch: UserUpdate) -> Optional[User]:
        """Apply the fields set on ``patch`` and refresh ``updated_at``."""

    @abc.abstractmethod
    def change_password(self, user_id: str, password: str) -> Optional[User]:
        ...

    def authenticate_user(self, email: str, password: str) -> Optional[User]:
        return authenticate(self, email, password)

    # Tool usage

    @abc.abstractmethod
    def create_tool_usage(self, data: ToolUsageCreate) -> ToolUsage:
        ...

    @abc.abstractmethod
    def list_tool_usage(self, filters: Optional[ToolUsageFilters] = None) -> List[ToolUsage]:
        """Return matching events, most recent first."""

    @abc.abstractmethod
    def iter_tool_usage(self) -> Iterable[ToolUsage]:
        """Yield every event in creation order."""

    # Ad slots

    @abc.abstractmethod
    def list_ad_slots(self) -> List[AdSlot]:
        ...

    @abc.abstractmethod
    def get_ad_slot(self, slot_id: str) -> Optional[AdSlot]:
        ...

    @abc.abstractmethod
    def list_active_ad_slots(self, page: str) -> List[AdSlot]:
        ...

    @abc.abstractmethod
    def create_ad_slot(self, data: AdSlotCreate) -> AdSlot:
        ...

    @abc.abstractmethod
    def update_ad_slot(self, slot_id: str, patch: AdSlotUpdate) -> Optional[AdSlot]:
        ...

    @abc.abstractmethod
    def delete_ad_slot(self, slot_id: str) -> bool:
        ...

    # Analytics

    def get_analytics(self) -> AnalyticsSummary:
        return analytics.compute_analytics(self.iter_tool_usage())


class MemoryStorage(Storage):
    """Keeps every collection in process memory behind a single lock."""

    def __init__(self, hasher: Optional[PasswordHasher] = None) -> None:
        super().__init__(hasher)
        self._users: Dict[str, User] = {}
        self._tool_usage: Dict[str, ToolUsage] = {}
        self._ad_slots: Dict[str, AdSlot] = {}
        self._lock = threading.Lock()

    def _find_user(self, field: str, value: str) -> Optional[User]:
        for user in self._users.values():
            if getattr(user, field) == value:
                return user
        return None

    def _check_unique(self, values: Mapping[str, Any], exclude_id: Optional[str] = None) -> None:
        for field in UNIQUE_USER_FIELDS:
            if field not in values:
                continue
            existing = self._find_user(field, values[field])
            if existing is not None and existing.id != exclude_id:
                raise DuplicateKeyError(field, values[field])

    def get_user(self, user_id: str) -> Optional[User]:
        with self._lock:
            return self._users.get(user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._lock:
            return self._find_user("email", email)

    def get_user_by_username(self, username: str) -> Optional[User]:
        with self._lock:
            return self._find_user("username", username)

    def create_user(self, data: UserCreate) -> User:
        password_hash = self.hasher.hash(data.password)
        now = utcnow()
        user = User(
            id=new_id(),
            username=data.username,
            email=data.email,
            password_hash=password_hash,
            role=data.role,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._check_unique({"email": user.email, "username": user.username})
            self._users[user.id] = user
        logger.info("Created user %s with role %s", user.id, user.role.value)
        return user

    def update_user(self, user_id: str, patch: UserUpdate) -> Optional[User]:
        changes = patch.model_dump(exclude_unset=True)
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return None
            self._check_unique(changes, exclude_id=user_id)
            updated = user.model_copy(update={**changes, "updated_at": utcnow()})
            self._users[user_id] = updated
        return updated

    def change_password(self, user_id: str, password: str) -> Optional[User]:
        if self.get_user(user_id) is None:
            return None
        password_hash = self.hasher.hash(password)
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return None
            updated = user.model_copy(update={"password_hash": password_hash, "updated_at": utcnow()})
            self._users[user_id] = updated
        return updated

    def create_tool_usage(self, data: ToolUsageCreate) -> ToolUsage:
        usage = ToolUsage(id=new_id(), timestamp=utcnow(), **data.model_dump())
        with self._lock:
            self._tool_usage[usage.id] = usage
        return usage

    def list_tool_usage(self, filters: Optional[ToolUsageFilters] = None) -> List[ToolUsage]:
        filters = (filters or ToolUsageFilters()).normalized()
        with self._lock:
            events = list(self._tool_usage.values())
        matching = [event for event in events if filters.matches(event)]
        # sorted() is stable with reverse=True, so equal timestamps keep creation order.
        return sorted(matching, key=lambda event: event.timestamp, reverse=True)

    def iter_tool_usage(self) -> Iterable[ToolUsage]:
        with self._lock:
            events = list(self._tool_usage.values())
        return iter(events)

    def list_ad_slots(self) -> List[AdSlot]:
        with self._lock:
            return [slot.model_copy(deep=True) for slot in self._ad_slots.values()]

    def get_ad_slot(self, slot_id: str) -> Optional[AdSlot]:
        with self._lock:
            slot = self._ad_slots.get(slot_id)
            return slot.model_copy(deep=True) if slot is not None else None

    def list_active_ad_slots(self, page: str) -> List[AdSlot]:
        with self._lock:
            return [
                slot.model_copy(deep=True)
                for slot in self._ad_slots.values()
                if slot.page == page and slot.is_active
            ]

    def create_ad_slot(self, data: AdSlotCreate) -> AdSlot:
        slot = AdSlot(id=new_id(), created_at=utcnow(), **data.model_dump())
        with self._lock:
            self._ad_slots[slot.id] = slot
        return slot.model_copy(deep=True)

    def update_ad_slot(self, slot_id: str, patch: AdSlotUpdate) -> Optional[AdSlot]:
        changes = patch.model_dump(exclude_unset=True)
        with self._lock:
            slot = self._ad_slots.get(slot_id)
            if slot is None:
                return None
            updated = slot.model_copy(update=changes)
            self._ad_slots[slot_id] = updated
        return updated.model_copy(deep=True)

    def delete_ad_slot(self, slot_id: str) -> bool:
        with self._lock:
            return self._ad_slots.pop(slot_id, None) is not None
