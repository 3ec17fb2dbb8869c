"""
Append-only comment threads on complaints.
"""
from typing import List, Tuple
from sqlalchemy.orm import Session

from database.models import Comment, Profile
from services.policy import Principal, Operation, CommentDraft, allow, enforce
from services.complaint_service import ComplaintService
from core.exceptions import NotFound
from core.validators import require_text
from core.logger import logger
import config


class CommentService:
    """Comment operations. There is no edit or delete."""

    @staticmethod
    def list_for_complaint(db: Session, principal: Principal, complaint_id: str) -> List[Tuple[Comment, str]]:
        """
        Thread of a complaint, oldest first, with author display names.

        A principal who may read the complaint but not its thread (staff
        who are not the assignee) gets an empty list.

        Args:
            db: Database session
            principal: Caller
            complaint_id: Parent complaint

        Returns:
            List of (comment, author_name)
        """
        complaint = ComplaintService.find(db, complaint_id)
        if not allow(principal, complaint, Operation.READ):
            raise NotFound("Complaint not found")

        rows = (
            db.query(Comment, Profile.full_name)
            .outerjoin(Profile, Profile.id == Comment.user_id)
            .filter(Comment.complaint_id == complaint_id)
            .order_by(Comment.created_at.asc())
            .all()
        )
        return [
            (comment, author or "Unknown")
            for comment, author in rows
            if allow(principal, comment, Operation.READ)
        ]

    @staticmethod
    def add(db: Session, principal: Principal, complaint_id: str, message: str) -> Comment:
        """
        Append a message to a complaint thread as ``principal``.

        Args:
            db: Database session
            principal: Caller, becomes the author
            complaint_id: Parent complaint
            message: Non-empty text

        Returns:
            Created Comment
        """
        text = require_text(message, "message", config.COMMENT_MAX_LENGTH)
        complaint = ComplaintService.find(db, complaint_id)
        draft = CommentDraft(complaint=complaint, user_id=principal.id, message=text) if complaint else None
        enforce(principal, draft, Operation.INSERT)

        comment = Comment(complaint_id=complaint.id, user_id=principal.id, message=text)
        db.add(comment)
        db.commit()
        db.refresh(comment)
        logger.info(f"Comment {comment.id} added to complaint {complaint.id} by {principal.id}")
        return comment
