"""
Identity and role store: profiles, role records and the admin directory.
"""
from datetime import datetime
from typing import Dict, List, Optional, Tuple
from sqlalchemy.orm import Session

from database.models import User, Profile, UserRoleRecord, AppRole
from services.policy import Principal, Operation, allow, enforce
from services.auth_service import AuthService
from core.exceptions import NotFound, AccessDenied, ValidationError
from core.validators import require_text, validate_uuid
from core.logger import logger
import config


class IdentityService:
    """Profile and role operations, each checked against the row policy."""

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    @staticmethod
    def _load_profile(db: Session, profile_id: str) -> Optional[Profile]:
        if not validate_uuid(profile_id):
            return None
        return db.query(Profile).filter(Profile.id == profile_id).first()

    @staticmethod
    def list_profiles(db: Session, principal: Principal) -> List[Profile]:
        """Every profile readable by ``principal``, ordered by name."""
        profiles = db.query(Profile).order_by(Profile.full_name).all()
        return [p for p in profiles if allow(principal, p, Operation.READ)]

    @staticmethod
    def get_profile(db: Session, principal: Principal, profile_id: str) -> Profile:
        profile = IdentityService._load_profile(db, profile_id)
        if not allow(principal, profile, Operation.READ):
            raise NotFound("Profile not found")
        return profile

    @staticmethod
    def update_profile(
        db: Session,
        principal: Principal,
        profile_id: str,
        full_name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Profile:
        """
        Edit a profile row. Only the owner may do this.

        Args:
            db: Database session
            principal: Caller
            profile_id: Profile (= user) ID
            full_name: New display name, if changing
            email: New contact email, if changing

        Returns:
            Updated Profile
        """
        profile = IdentityService._load_profile(db, profile_id)
        enforce(principal, profile, Operation.UPDATE)

        if full_name is not None:
            profile.full_name = require_text(full_name, "full_name", config.NAME_MAX_LENGTH)
        if email is not None:
            profile.email = require_text(email, "email").lower()
        profile.updated_at = datetime.utcnow()
        db.commit()
        db.refresh(profile)
        logger.info(f"Profile updated: {profile.id}")
        return profile

    @staticmethod
    def name_map(db: Session) -> Dict[str, str]:
        """Display name by user id, for joining authors and assignees."""
        return {p.id: p.full_name for p in db.query(Profile).all()}

    @staticmethod
    def email_map(db: Session, user_ids: List[str]) -> Dict[str, str]:
        """Profile email by user id, limited to ``user_ids``."""
        profiles = db.query(Profile).filter(Profile.id.in_(user_ids)).all()
        return {p.id: p.email for p in profiles}

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    @staticmethod
    def _load_role(db: Session, user_id: str) -> Optional[UserRoleRecord]:
        if not validate_uuid(user_id):
            return None
        return db.query(UserRoleRecord).filter(UserRoleRecord.user_id == user_id).first()

    @staticmethod
    def get_role(db: Session, principal: Principal, user_id: str) -> UserRoleRecord:
        """Role record of ``user_id``; visible to its owner and to admins."""
        record = IdentityService._load_role(db, user_id)
        if not allow(principal, record, Operation.READ):
            raise NotFound("Role not found")
        return record

    @staticmethod
    def _write_single_role(db: Session, user_id: str, role: AppRole) -> UserRoleRecord:
        """Keep exactly one role row for ``user_id``, updated in place."""
        records = (
            db.query(UserRoleRecord)
            .filter(UserRoleRecord.user_id == user_id)
            .order_by(UserRoleRecord.created_at)
            .all()
        )
        if not records:
            record = UserRoleRecord(user_id=user_id, role=role)
            db.add(record)
            return record

        record, extras = records[0], records[1:]
        for extra in extras:
            db.delete(extra)
        db.flush()
        record.role = role
        return record

    @staticmethod
    def set_role(db: Session, principal: Principal, user_id: str, role: AppRole) -> UserRoleRecord:
        """
        Promote or demote a user. Admin only.

        Args:
            db: Database session
            principal: Caller (must hold admin)
            user_id: Target user
            role: New role

        Returns:
            The user's single role record
        """
        existing = IdentityService._load_role(db, user_id)
        target = existing or UserRoleRecord(user_id=user_id, role=role)
        enforce(principal, target, Operation.INSERT if existing is None else Operation.UPDATE)

        if AuthService.get_user_by_id(db, user_id) is None:
            raise AccessDenied()

        record = IdentityService._write_single_role(db, user_id, role)
        db.commit()
        db.refresh(record)
        logger.info(f"Role of user {user_id} set to {role.value} by {principal.id}")
        return record

    # ------------------------------------------------------------------
    # Admin directory
    # ------------------------------------------------------------------

    @staticmethod
    def _require_admin(principal: Principal) -> None:
        if not principal.is_admin:
            logger.warning(f"Denied admin directory access for user {principal.id}")
            raise AccessDenied()

    @staticmethod
    def list_users(db: Session, principal: Principal) -> List[Tuple[Profile, AppRole]]:
        """All profiles joined with their role. Admin only."""
        IdentityService._require_admin(principal)
        roles = {r.user_id: r.role for r in db.query(UserRoleRecord).all()}
        profiles = db.query(Profile).order_by(Profile.created_at.desc()).all()
        return [(p, roles.get(p.id, AppRole.STUDENT)) for p in profiles]

    @staticmethod
    def list_staff(db: Session, principal: Principal) -> List[Profile]:
        """Profiles holding the staff role. Admin only."""
        IdentityService._require_admin(principal)
        return (
            db.query(Profile)
            .join(UserRoleRecord, UserRoleRecord.user_id == Profile.id)
            .filter(UserRoleRecord.role == AppRole.STAFF)
            .order_by(Profile.full_name)
            .all()
        )

    @staticmethod
    def delete_user(db: Session, principal: Principal, user_id: str) -> None:
        """
        Delete an account. Admin only.

        Profile, role, owned complaints and authored comments go with it;
        complaints assigned to the user fall back to unassigned.
        """
        IdentityService._require_admin(principal)
        if user_id == principal.id:
            raise ValidationError("Admins cannot delete their own account")

        user = AuthService.get_user_by_id(db, user_id)
        if user is None:
            raise AccessDenied()
        db.delete(user)
        db.commit()
        logger.info(f"User {user_id} deleted by {principal.id}")

    # ------------------------------------------------------------------
    # Operator bootstrap
    # ------------------------------------------------------------------

    @staticmethod
    def bootstrap_admin(
        db: Session,
        email: str,
        password: str,
        full_name: Optional[str] = None,
    ) -> User:
        """
        Create (or promote) an admin account without a principal.

        Only the operator script calls this; no admin exists to authorize it.
        """
        user = AuthService.get_user_by_email(db, email)
        if user is None:
            user = AuthService.sign_up(db, email, password, full_name)

        IdentityService._write_single_role(db, user.id, AppRole.ADMIN)
        db.commit()
        logger.info(f"Bootstrapped admin account: {user.email}")
        return user
