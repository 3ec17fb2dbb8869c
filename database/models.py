"""
Database models for the complaint management system.
"""
from datetime import datetime
import uuid
from sqlalchemy import (
    Column, String, Boolean, DateTime, Text, ForeignKey, JSON,
    Index, UniqueConstraint, TypeDecorator
)
from sqlalchemy.orm import declarative_base, relationship
import enum

Base = declarative_base()


def new_uuid() -> str:
    """Primary key default for every table."""
    return str(uuid.uuid4())


# ============================================================================
# Custom Type Decorator for Enum Values
# ============================================================================

class EnumValue(TypeDecorator):
    """Type decorator to ensure enum values (not names) are stored."""
    impl = String
    cache_ok = True

    def __init__(self, enum_class, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.enum_class = enum_class

    def process_bind_param(self, value, dialect):
        """Convert enum to its value when writing to database."""
        if value is None:
            return None
        if isinstance(value, enum.Enum):
            return value.value
        return value

    def process_result_value(self, value, dialect):
        """Convert database value back to enum when reading."""
        if value is None:
            return None
        if isinstance(value, str):
            try:
                return self.enum_class(value)
            except ValueError:
                return value
        return value


# ============================================================================
# Enums - Must be defined before models that use them
# ============================================================================

class AppRole(str, enum.Enum):
    """User roles for authorization."""
    STUDENT = "student"
    STAFF = "staff"
    ADMIN = "admin"


class ComplaintStatus(str, enum.Enum):
    """Complaint lifecycle status. No transition table: any status may follow any other."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"


class ComplaintCategory(str, enum.Enum):
    """Complaint categories."""
    ACADEMIC = "academic"
    INFRASTRUCTURE = "infrastructure"
    ADMINISTRATIVE = "administrative"
    TECHNICAL = "technical"
    OTHER = "other"


# ============================================================================
# Models
# ============================================================================

class User(Base):
    """Authentication account. Profile and role rows hang off it and cascade with it."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_uuid)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_login = Column(DateTime, nullable=True)

    profile = relationship(
        "Profile", back_populates="user", uselist=False,
        cascade="all, delete-orphan", passive_deletes=True
    )
    roles = relationship(
        "UserRoleRecord", back_populates="user",
        cascade="all, delete-orphan", passive_deletes=True
    )


class Profile(Base):
    """Public profile data. Readable by every authenticated principal."""
    __tablename__ = "profiles"

    id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    full_name = Column(Text, nullable=False)
    email = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="profile")


class UserRoleRecord(Base):
    """
    Role assignment, kept apart from the profile so a user editing their own
    profile row cannot escalate their role.
    """
    __tablename__ = "user_roles"

    id = Column(String(36), primary_key=True, default=new_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role = Column(EnumValue(AppRole, 20), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="roles")

    __table_args__ = (
        UniqueConstraint('user_id', 'role', name='uq_user_roles_user_role'),
        Index('idx_user_roles_user', 'user_id'),
    )


class Complaint(Base):
    """Complaint filed by a student, optionally assigned to a staff member."""
    __tablename__ = "complaints"

    id = Column(String(36), primary_key=True, default=new_uuid)
    student_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    category = Column(EnumValue(ComplaintCategory, 30), nullable=False)
    status = Column(EnumValue(ComplaintStatus, 20), default=ComplaintStatus.PENDING, nullable=False)
    assigned_to = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    comments = relationship(
        "Comment",
        back_populates="complaint",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Comment.created_at",
    )

    __table_args__ = (
        Index('idx_complaint_student', 'student_id'),
        Index('idx_complaint_assigned', 'assigned_to'),
        Index('idx_complaint_status', 'status'),
        Index('idx_complaint_created', 'created_at'),
    )


class Comment(Base):
    """Append-only message on a complaint thread."""
    __tablename__ = "comments"

    id = Column(String(36), primary_key=True, default=new_uuid)
    complaint_id = Column(String(36), ForeignKey("complaints.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    complaint = relationship("Complaint", back_populates="comments")

    __table_args__ = (
        Index('idx_comment_complaint', 'complaint_id'),
        Index('idx_comment_created', 'created_at'),
    )


class AuditLog(Base):
    """Audit log for security and compliance."""
    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=new_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action = Column(String(100), nullable=False)  # e.g., "complaint_create", "role_update", "user_login"
    resource_type = Column(String(50), nullable=True)  # e.g., "complaint", "comment", "user_role"
    resource_id = Column(String(100), nullable=True)
    ip_address = Column(String(45), nullable=True)  # IPv6 compatible
    user_agent = Column(String(500), nullable=True)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    __table_args__ = (
        Index('idx_audit_user', 'user_id'),
        Index('idx_audit_action', 'action'),
    )
