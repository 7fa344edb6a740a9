# db/models.py
import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON, Boolean, Column, DateTime, Enum, ForeignKey, Integer, String, Text, UniqueConstraint
)

from db.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorkspaceRole(str, enum.Enum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"
    VIEWER = "VIEWER"


class ContactStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSED = "PROCESSED"
    FAILED = "FAILED"


class TimestampMixin:
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255))
    image = Column(String(1024))
    is_active = Column(Boolean, default=True, nullable=False)


class AuthSession(Base):
    __tablename__ = "sessions"

    id = Column(String(36), primary_key=True, default=_new_id)
    # HMAC of the bearer token; the token itself is never stored
    token_hash = Column(String(64), unique=True, index=True, nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    expires = Column(DateTime(timezone=True), nullable=False)


class Workspace(Base, TimestampMixin):
    __tablename__ = "workspaces"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, index=True, nullable=False)
    description = Column(Text)
    is_active = Column(Boolean, default=True, nullable=False)
    settings = Column(JSON)
    # Denormalized; only ever changed with a single UPDATE ... SET contact_count = contact_count +/- 1
    contact_count = Column(Integer, default=0, nullable=False)


class UserWorkspace(Base, TimestampMixin):
    __tablename__ = "user_workspaces"
    __table_args__ = (UniqueConstraint("user_id", "workspace_id", name="user_workspaces_user_workspace_key"),)

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    workspace_id = Column(String(36), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False)
    role = Column(Enum(WorkspaceRole), default=WorkspaceRole.MEMBER, nullable=False)


class Contact(Base, TimestampMixin):
    __tablename__ = "contacts"

    id = Column(String(36), primary_key=True, default=_new_id)
    workspace_id = Column(String(36), ForeignKey("workspaces.id", ondelete="CASCADE"), index=True, nullable=False)

    name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=False)
    email = Column(String(255))
    company = Column(String(255))
    notes = Column(Text)
    source = Column(String(50), default="voice_scheduler", nullable=False)
    transcription = Column(Text)

    status = Column(Enum(ContactStatus), default=ContactStatus.PENDING, nullable=False)
    delivery_status_code = Column(Integer)
    delivery_variant = Column(String(50))


class UsageLog(Base):
    __tablename__ = "usage_logs"

    id = Column(String(36), primary_key=True, default=_new_id)
    workspace_id = Column(String(36), ForeignKey("workspaces.id", ondelete="CASCADE"), index=True, nullable=False)
    user_id = Column(String(36))
    action = Column(String(50), nullable=False)
    # "metadata" is reserved on declarative classes
    details = Column("metadata", JSON)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
