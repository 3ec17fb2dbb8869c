"""
Authentication service: sign-up, login, tokens and principal resolution.
"""
from datetime import datetime
from typing import Optional, Tuple
from sqlalchemy.orm import Session
from sqlalchemy import func

from database.models import User, Profile, UserRoleRecord, AppRole
from auth.security import (
    verify_password, get_password_hash, validate_password,
    create_access_token, create_refresh_token
)
from services.policy import Principal
from core.exceptions import ValidationError
from core.validators import require_text, validate_uuid
from core.logger import logger
import config

DEFAULT_FULL_NAME = "User"


class AuthService:
    """Service for authentication operations."""

    @staticmethod
    def sign_up(
        db: Session,
        email: str,
        password: str,
        full_name: Optional[str] = None,
    ) -> User:
        """
        Create an account with its profile and the default student role.

        The three rows are committed together, so a failed sign-up leaves
        nothing behind.

        Args:
            db: Database session
            email: Login email (stored lower-cased)
            password: Plain text password
            full_name: Display name; blank falls back to "User"

        Returns:
            Created User
        """
        is_valid, error_message = validate_password(password)
        if not is_valid:
            raise ValidationError(error_message)

        email = (email or "").strip().lower()
        if not email:
            raise ValidationError("email is required")

        existing = db.query(User).filter(func.lower(User.email) == email).first()
        if existing:
            raise ValidationError("User with this email already exists")

        if full_name and full_name.strip():
            full_name = require_text(full_name, "full_name", config.NAME_MAX_LENGTH)
        else:
            full_name = DEFAULT_FULL_NAME

        user = User(
            email=email,
            hashed_password=get_password_hash(password),
            is_active=True,
        )
        user.profile = Profile(
            full_name=full_name,
            email=email,
        )
        user.roles.append(UserRoleRecord(role=AppRole.STUDENT))
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info(f"Signed up user: {email} ({user.id})")
        return user

    @staticmethod
    def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
        """
        Authenticate a user by email and password.

        Args:
            db: Database session
            email: Login email
            password: Plain text password

        Returns:
            User if authenticated, None otherwise
        """
        user = db.query(User).filter(func.lower(User.email) == (email or "").strip().lower()).first()
        if not user:
            return None

        if not verify_password(password, user.hashed_password):
            logger.warning(f"Failed login attempt for: {email}")
            return None

        if not user.is_active:
            return None

        user.last_login = datetime.utcnow()
        db.commit()
        return user

    @staticmethod
    def create_tokens(user: User) -> Tuple[str, str]:
        """
        Create access and refresh tokens for user.

        The role is deliberately left out of the token; it is resolved
        from ``user_roles`` on every request so promotions apply at once.

        Args:
            user: User object

        Returns:
            Tuple of (access_token, refresh_token)
        """
        data = {"sub": user.id, "email": user.email}
        access_token = create_access_token(data, config.SECRET_KEY)
        refresh_token = create_refresh_token(data, config.SECRET_KEY)
        return access_token, refresh_token

    @staticmethod
    def get_user_by_id(db: Session, user_id: str) -> Optional[User]:
        """Get user by ID. Malformed ids match nothing."""
        if not validate_uuid(user_id):
            return None
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_user_by_email(db: Session, email: str) -> Optional[User]:
        """Get user by email."""
        return db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()

    @staticmethod
    def resolve_role(db: Session, user_id: str) -> AppRole:
        """Single role of a user; a missing role row means student."""
        record = db.query(UserRoleRecord).filter(UserRoleRecord.user_id == user_id).first()
        if record is None or not isinstance(record.role, AppRole):
            return AppRole.STUDENT
        return record.role

    @staticmethod
    def resolve_principal(db: Session, user: User) -> Principal:
        """Build the explicit principal context for an authenticated user."""
        return Principal(id=user.id, role=AuthService.resolve_role(db, user.id))
