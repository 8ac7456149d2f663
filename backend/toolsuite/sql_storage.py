"""Relational entity store backed by SQLAlchemy."""
from __future__ import annotations

import logging
from typing import Any, Iterator, List, Mapping, Optional

from sqlalchemy import Select, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from . import models
from .auth import PasswordHasher
from .database import create_db_engine, create_session_factory, session_scope
from .schemas import (
    AdSlot,
    AdSlotCreate,
    AdSlotUpdate,
    ToolUsage,
    ToolUsageCreate,
    User,
    UserCreate,
    UserUpdate,
)
from .storage import (
    UNIQUE_USER_FIELDS,
    DuplicateKeyError,
    Storage,
    ToolUsageFilters,
    new_id,
    utcnow,
)

logger = logging.getLogger(__name__)

STREAM_BATCH_SIZE = 500


class SqlStorage(Storage):
    """Stores users, tool usage and ad slots in a relational database.

    Each operation runs in its own session and transaction. The unique
    constraints on ``users.email`` and ``users.username`` back the explicit
    duplicate check, so two racing registrations cannot both succeed.
    """

    def __init__(self, session_factory: sessionmaker, hasher: Optional[PasswordHasher] = None) -> None:
        super().__init__(hasher)
        self._session_factory = session_factory

    @classmethod
    def from_url(cls, url: Optional[str] = None, hasher: Optional[PasswordHasher] = None) -> "SqlStorage":
        engine = create_db_engine(url)
        models.Base.metadata.create_all(bind=engine)
        return cls(create_session_factory(engine), hasher)

    @staticmethod
    def _check_unique(session: Session, values: Mapping[str, Any], exclude_id: Optional[str] = None) -> None:
        for field in UNIQUE_USER_FIELDS:
            if field not in values:
                continue
            stmt = select(models.User.id).where(getattr(models.User, field) == values[field])
            if exclude_id is not None:
                stmt = stmt.where(models.User.id != exclude_id)
            if session.execute(stmt).first() is not None:
                raise DuplicateKeyError(field, values[field])

    def _find_user(self, field: str, value: str) -> Optional[User]:
        stmt = select(models.User).where(getattr(models.User, field) == value)
        with self._session_factory() as session:
            row = session.execute(stmt).scalar_one_or_none()
            return User.model_validate(row) if row is not None else None

    def get_user(self, user_id: str) -> Optional[User]:
        with self._session_factory() as session:
            row = session.get(models.User, user_id)
            return User.model_validate(row) if row is not None else None

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self._find_user("email", email)

    def get_user_by_username(self, username: str) -> Optional[User]:
        return self._find_user("username", username)

    def create_user(self, data: UserCreate) -> User:
        password_hash = self.hasher.hash(data.password)
        now = utcnow()
        row = models.User(
            id=new_id(),
            username=data.username,
            email=data.email,
            password_hash=password_hash,
            role=data.role.value,
            created_at=now,
            updated_at=now,
        )
        try:
            with session_scope(self._session_factory) as session:
                self._check_unique(session, {"email": row.email, "username": row.username})
                session.add(row)
        except IntegrityError as exc:
            logger.warning("Concurrent registration collided on a unique user field")
            raise DuplicateKeyError("email or username") from exc
        logger.info("Created user %s with role %s", row.id, row.role)
        return User.model_validate(row)

    def update_user(self, user_id: str, patch: UserUpdate) -> Optional[User]:
        changes = patch.model_dump(exclude_unset=True)
        if "role" in changes:
            changes["role"] = changes["role"].value
        try:
            with session_scope(self._session_factory) as session:
                row = session.get(models.User, user_id)
                if row is None:
                    return None
                self._check_unique(session, changes, exclude_id=user_id)
                for field, value in changes.items():
                    setattr(row, field, value)
                row.updated_at = utcnow()
        except IntegrityError as exc:
            raise DuplicateKeyError("email or username") from exc
        return User.model_validate(row)

    def change_password(self, user_id: str, password: str) -> Optional[User]:
        if self.get_user(user_id) is None:
            return None
        password_hash = self.hasher.hash(password)
        with session_scope(self._session_factory) as session:
            row = session.get(models.User, user_id)
            if row is None:
                return None
            row.password_hash = password_hash
            row.updated_at = utcnow()
        return User.model_validate(row)

    def create_tool_usage(self, data: ToolUsageCreate) -> ToolUsage:
        row = models.ToolUsage(id=new_id(), timestamp=utcnow(), **data.model_dump())
        with session_scope(self._session_factory) as session:
            session.add(row)
        return ToolUsage.model_validate(row)

    def list_tool_usage(self, filters: Optional[ToolUsageFilters] = None) -> List[ToolUsage]:
        filters = (filters or ToolUsageFilters()).normalized()
        stmt: Select = select(models.ToolUsage)
        if filters.tool_name:
            stmt = stmt.where(models.ToolUsage.tool_name == filters.tool_name)
        if filters.category:
            stmt = stmt.where(models.ToolUsage.category == filters.category)
        if filters.date_from:
            stmt = stmt.where(models.ToolUsage.timestamp >= filters.date_from)
        if filters.date_to:
            stmt = stmt.where(models.ToolUsage.timestamp <= filters.date_to)
        # Equal timestamps keep creation order, as in the in-memory backend.
        stmt = stmt.order_by(models.ToolUsage.timestamp.desc(), models.ToolUsage.seq.asc())
        with self._session_factory() as session:
            rows = session.execute(stmt).scalars().all()
            return [ToolUsage.model_validate(row) for row in rows]

    def iter_tool_usage(self) -> Iterator[ToolUsage]:
        stmt = (
            select(models.ToolUsage)
            .order_by(models.ToolUsage.seq.asc())
            .execution_options(yield_per=STREAM_BATCH_SIZE)
        )
        with self._session_factory() as session:
            for row in session.execute(stmt).scalars():
                yield ToolUsage.model_validate(row)

    def list_ad_slots(self) -> List[AdSlot]:
        stmt = select(models.AdSlot).order_by(models.AdSlot.created_at.asc())
        with self._session_factory() as session:
            return [AdSlot.model_validate(row) for row in session.execute(stmt).scalars().all()]

    def get_ad_slot(self, slot_id: str) -> Optional[AdSlot]:
        with self._session_factory() as session:
            row = session.get(models.AdSlot, slot_id)
            return AdSlot.model_validate(row) if row is not None else None

    def list_active_ad_slots(self, page: str) -> List[AdSlot]:
        stmt = (
            select(models.AdSlot)
            .where(models.AdSlot.page == page, models.AdSlot.is_active.is_(True))
            .order_by(models.AdSlot.created_at.asc())
        )
        with self._session_factory() as session:
            return [AdSlot.model_validate(row) for row in session.execute(stmt).scalars().all()]

    def create_ad_slot(self, data: AdSlotCreate) -> AdSlot:
        row = models.AdSlot(id=new_id(), created_at=utcnow(), **data.model_dump())
        with session_scope(self._session_factory) as session:
            session.add(row)
        return AdSlot.model_validate(row)

    def update_ad_slot(self, slot_id: str, patch: AdSlotUpdate) -> Optional[AdSlot]:
        changes = patch.model_dump(exclude_unset=True)
        with session_scope(self._session_factory) as session:
            row = session.get(models.AdSlot, slot_id)
            if row is None:
                return None
            for field, value in changes.items():
                setattr(row, field, value)
        return AdSlot.model_validate(row)

    def delete_ad_slot(self, slot_id: str) -> bool:
        with session_scope(self._session_factory) as session:
            row = session.get(models.AdSlot, slot_id)
            if row is None:
                return False
            session.delete(row)
        return True
