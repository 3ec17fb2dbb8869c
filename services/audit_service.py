"""
Audit trail for sign-ups, logins, complaint changes, comments and role changes.
"""
from typing import Optional, Dict, Any, List
from sqlalchemy.orm import Session
from fastapi import Request

from database.models import AuditLog
from core.logger import logger


class AuditAction:
    SIGN_UP = "user_signup"
    LOGIN = "user_login"
    PROFILE_UPDATE = "profile_update"
    ROLE_UPDATE = "role_update"
    USER_DELETE = "user_delete"
    COMPLAINT_CREATE = "complaint_create"
    COMPLAINT_UPDATE = "complaint_update"
    COMPLAINT_ASSIGN = "complaint_assign"
    COMPLAINT_DELETE = "complaint_delete"
    COMMENT_ADD = "comment_add"


class AuditService:
    """Service for audit logging."""

    @staticmethod
    def log_action(
        db: Session,
        action: str,
        user_id: Optional[str] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> AuditLog:
        """
        Persist one audit row.

        Args:
            db: Database session
            action: One of the AuditAction names
            user_id: Acting user ID
            resource_type: e.g. "complaint", "comment", "user_role"
            resource_id: ID of the affected row
            ip_address: Client address
            user_agent: User agent string
            details: Extra JSON payload

        Returns:
            Created AuditLog
        """
        audit_log = AuditLog(
            user_id=user_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            ip_address=ip_address,
            user_agent=user_agent[:500] if user_agent else None,
            details=details
        )
        db.add(audit_log)
        db.commit()
        logger.debug(f"Audit: {action} by {user_id} on {resource_type}:{resource_id}")
        return audit_log

    @staticmethod
    def log_from_request(
        db: Session,
        request: Request,
        action: str,
        user_id: Optional[str] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> AuditLog:
        """Log an action, taking client address and user agent from the request."""
        return AuditService.log_action(
            db=db,
            action=action,
            user_id=user_id,
            resource_type=resource_type,
            resource_id=resource_id,
            ip_address=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
            details=details
        )

    @staticmethod
    def list_for_resource(db: Session, resource_type: str, resource_id: str) -> List[AuditLog]:
        """History of one resource, oldest first."""
        return (
            db.query(AuditLog)
            .filter(AuditLog.resource_type == resource_type, AuditLog.resource_id == resource_id)
            .order_by(AuditLog.created_at.asc())
            .all()
        )
