"""
Complaint lifecycle store.

Statuses move freely between pending, in_progress and resolved; no
transition table exists and status is not coupled to assignment. Writes
are plain last-write-wins updates.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session

from database.models import Complaint, ComplaintStatus, UserRoleRecord, AppRole
from services.policy import Principal, Operation, allow, enforce
from core.exceptions import NotFound, ValidationError
from core.validators import require_text, parse_category, parse_status, validate_uuid
from core.logger import logger
import config

MUTABLE_FIELDS = ("status", "assigned_to", "title", "description", "category")


class ComplaintService:
    """Complaint operations, each checked against the row policy."""

    @staticmethod
    def find(db: Session, complaint_id: str) -> Optional[Complaint]:
        """Raw lookup with no policy check; malformed ids match nothing."""
        if not validate_uuid(complaint_id):
            return None
        return db.query(Complaint).filter(Complaint.id == complaint_id).first()

    @staticmethod
    def _require_staff(db: Session, user_id: str) -> None:
        if not validate_uuid(user_id):
            raise ValidationError("Assignee must be a staff member")
        is_staff = db.query(UserRoleRecord).filter(
            UserRoleRecord.user_id == user_id,
            UserRoleRecord.role == AppRole.STAFF
        ).first()
        if not is_staff:
            raise ValidationError("Assignee must be a staff member")

    @staticmethod
    def create(
        db: Session,
        principal: Principal,
        title: str,
        description: str,
        category: Any,
    ) -> Complaint:
        """
        File a complaint owned by ``principal``.

        Args:
            db: Database session
            principal: Caller, becomes the owner
            title: Non-empty title
            description: Non-empty description
            category: One of the complaint categories

        Returns:
            Created Complaint (status pending, unassigned)
        """
        complaint = Complaint(
            student_id=principal.id,
            title=require_text(title, "title", config.TITLE_MAX_LENGTH),
            description=require_text(description, "description", config.DESCRIPTION_MAX_LENGTH),
            category=parse_category(category),
            status=ComplaintStatus.PENDING,
            assigned_to=None,
        )
        enforce(principal, complaint, Operation.INSERT)
        db.add(complaint)
        db.commit()
        db.refresh(complaint)
        logger.info(f"Complaint {complaint.id} created by {principal.id}")
        return complaint

    @staticmethod
    def get(db: Session, principal: Principal, complaint_id: str) -> Complaint:
        complaint = ComplaintService.find(db, complaint_id)
        if not allow(principal, complaint, Operation.READ):
            raise NotFound("Complaint not found")
        return complaint

    @staticmethod
    def list_visible(db: Session, principal: Principal) -> List[Complaint]:
        """Every complaint ``principal`` may read, newest first."""
        query = db.query(Complaint)
        if principal.role not in (AppRole.STAFF, AppRole.ADMIN):
            query = query.filter(or_(
                Complaint.student_id == principal.id,
                Complaint.assigned_to == principal.id
            ))
        complaints = query.order_by(Complaint.created_at.desc()).all()
        return [c for c in complaints if allow(principal, c, Operation.READ)]

    @staticmethod
    def list_owned(db: Session, principal: Principal) -> List[Complaint]:
        """Complaints filed by ``principal``, newest first."""
        return (
            db.query(Complaint)
            .filter(Complaint.student_id == principal.id)
            .order_by(Complaint.created_at.desc())
            .all()
        )

    @staticmethod
    def list_assigned(db: Session, principal: Principal) -> List[Complaint]:
        """Complaints assigned to ``principal``, newest first."""
        return (
            db.query(Complaint)
            .filter(Complaint.assigned_to == principal.id)
            .order_by(Complaint.created_at.desc())
            .all()
        )

    @staticmethod
    def _clean_changes(db: Session, changes: Dict[str, Any]) -> Dict[str, Any]:
        unknown = set(changes) - set(MUTABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

        cleaned: Dict[str, Any] = {}
        if "status" in changes:
            cleaned["status"] = parse_status(changes["status"])
        if "category" in changes:
            cleaned["category"] = parse_category(changes["category"])
        if "title" in changes:
            cleaned["title"] = require_text(changes["title"], "title", config.TITLE_MAX_LENGTH)
        if "description" in changes:
            cleaned["description"] = require_text(changes["description"], "description", config.DESCRIPTION_MAX_LENGTH)
        if "assigned_to" in changes:
            assignee = changes["assigned_to"]
            if assignee is not None:
                ComplaintService._require_staff(db, assignee)
            cleaned["assigned_to"] = assignee
        return cleaned

    @staticmethod
    def update(db: Session, principal: Principal, complaint_id: str, changes: Dict[str, Any]) -> Complaint:
        """
        Apply a partial update.

        Only the staff assignee or an admin may update. Missing and
        invisible complaints both fail with AccessDenied.

        Args:
            db: Database session
            principal: Caller
            complaint_id: Complaint ID
            changes: Subset of status, assigned_to, title, description, category

        Returns:
            Updated Complaint
        """
        complaint = ComplaintService.find(db, complaint_id)
        enforce(principal, complaint, Operation.UPDATE)

        cleaned = ComplaintService._clean_changes(db, changes)
        for name, value in cleaned.items():
            setattr(complaint, name, value)
        complaint.updated_at = datetime.utcnow()
        db.commit()
        db.refresh(complaint)
        logger.info(f"Complaint {complaint.id} updated by {principal.id}: {', '.join(cleaned) or 'no fields'}")
        return complaint

    @staticmethod
    def update_status(db: Session, principal: Principal, complaint_id: str, status: Any) -> Complaint:
        return ComplaintService.update(db, principal, complaint_id, {"status": status})

    @staticmethod
    def assign(db: Session, principal: Principal, complaint_id: str, staff_id: str) -> Complaint:
        """
        Assign a complaint to a staff member and mark it in progress.

        Both fields are written in the same commit. Repeating the call with
        the same staff id leaves the same final state.
        """
        complaint = ComplaintService.find(db, complaint_id)
        enforce(principal, complaint, Operation.UPDATE)
        ComplaintService._require_staff(db, staff_id)

        complaint.assigned_to = staff_id
        complaint.status = ComplaintStatus.IN_PROGRESS
        complaint.updated_at = datetime.utcnow()
        db.commit()
        db.refresh(complaint)
        logger.info(f"Complaint {complaint.id} assigned to {staff_id} by {principal.id}")
        return complaint

    @staticmethod
    def delete(db: Session, principal: Principal, complaint_id: str) -> None:
        """Delete a complaint and its comment thread. Admin only."""
        complaint = ComplaintService.find(db, complaint_id)
        enforce(principal, complaint, Operation.DELETE)
        db.delete(complaint)
        db.commit()
        logger.info(f"Complaint {complaint_id} deleted by {principal.id}")
