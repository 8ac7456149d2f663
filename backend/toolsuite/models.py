"""SQLAlchemy models for users, tool usage events, ad slots and daily rollups."""
from __future__ import annotations

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)
    username = Column(String(64), unique=True, nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column("password", String(255), nullable=False)
    role = Column(String(16), nullable=False, default="user")
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)


class ToolUsage(Base):
    __tablename__ = "tool_usage"

    # Insertion order; breaks ties between equal timestamps.
    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(36), unique=True, nullable=False)
    tool_name = Column(String(128), index=True, nullable=False)
    category = Column(String(64), index=True, nullable=False)
    # Weak reference to users.id; events outlive account changes.
    user_id = Column(String(36), index=True, nullable=True)
    session_id = Column(String(255), nullable=True)
    timestamp = Column(DateTime, index=True, nullable=False)
    processing_time = Column(Integer, nullable=True)
    file_size = Column(Integer, nullable=True)
    success = Column(Boolean, nullable=False)


class AdSlot(Base):
    __tablename__ = "ad_slots"

    id = Column(String(36), primary_key=True)
    name = Column(String(255), nullable=False)
    position = Column(String(64), nullable=False)
    page = Column(String(64), index=True, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    ad_provider = Column(String(64), nullable=True)
    ad_code = Column(Text, nullable=True)
    settings = Column(JSON, nullable=True)
    created_at = Column(DateTime, nullable=False)


class DailyToolRollup(Base):
    """Pre-aggregated daily statistics per tool.

    Nothing writes this table yet; analytics are computed from ``tool_usage``.
    """

    __tablename__ = "analytics"

    id = Column(String(36), primary_key=True)
    date = Column(String(10), index=True, nullable=False)
    tool_name = Column(String(128), nullable=False)
    category = Column(String(64), nullable=False)
    usage_count = Column(Integer, nullable=False, default=0)
    success_rate = Column(String(8), nullable=True)
    avg_processing_time = Column(Integer, nullable=True)
