"""
Row-level authorization rules.

Every service calls ``enforce`` (or ``allow``) with an explicit principal
before reading or writing a row. The rules are plain predicates over the
principal and the record; nothing here touches the database.
"""
from dataclasses import dataclass
from typing import NamedTuple, Optional, Union
import enum

from database.models import AppRole, Profile, UserRoleRecord, Complaint, Comment
from core.exceptions import AccessDenied
from core.logger import get_logger

logger = get_logger(__name__)


class Operation(str, enum.Enum):
    READ = "read"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class Principal:
    """Authenticated caller, passed explicitly into every service call."""
    id: str
    role: AppRole = AppRole.STUDENT

    @property
    def is_admin(self) -> bool:
        return self.role == AppRole.ADMIN

    @property
    def is_staff(self) -> bool:
        return self.role == AppRole.STAFF


class CommentDraft(NamedTuple):
    """A comment that is about to be inserted (no row exists yet)."""
    complaint: Complaint
    user_id: str
    message: str


Record = Union[Profile, UserRoleRecord, Complaint, Comment, CommentDraft]


# ---------------------------------------------------------------------------
# Per-table rules
# ---------------------------------------------------------------------------

def _profile_rule(principal: Principal, profile: Profile, operation: Operation) -> bool:
    if operation == Operation.READ:
        return True
    if operation == Operation.UPDATE:
        return profile.id == principal.id
    return False


def _role_rule(principal: Principal, record: UserRoleRecord, operation: Operation) -> bool:
    if operation == Operation.READ:
        return record.user_id == principal.id or principal.is_admin
    return principal.is_admin


def can_read_complaint(principal: Principal, complaint: Complaint) -> bool:
    return (
        complaint.student_id == principal.id
        or complaint.assigned_to == principal.id
        or principal.role in (AppRole.STAFF, AppRole.ADMIN)
    )


def can_update_complaint(principal: Principal, complaint: Complaint) -> bool:
    return (principal.is_staff and complaint.assigned_to == principal.id) or principal.is_admin


def can_read_comments(principal: Principal, complaint: Complaint) -> bool:
    """
    Comment threads are narrower than complaints: staff who are not the
    assignee can browse the complaint but not its thread.
    """
    return (
        complaint.student_id == principal.id
        or complaint.assigned_to == principal.id
        or principal.is_admin
    )


def _complaint_rule(principal: Principal, complaint: Complaint, operation: Operation) -> bool:
    if operation == Operation.READ:
        return can_read_complaint(principal, complaint)
    if operation == Operation.INSERT:
        return complaint.student_id == principal.id
    if operation == Operation.UPDATE:
        return can_update_complaint(principal, complaint)
    if operation == Operation.DELETE:
        return principal.is_admin
    return False


def _comment_rule(principal: Principal, comment: Union[Comment, CommentDraft], operation: Operation) -> bool:
    complaint = comment.complaint
    if complaint is None:
        return False
    if operation == Operation.READ:
        return can_read_comments(principal, complaint)
    if operation == Operation.INSERT:
        return comment.user_id == principal.id and can_read_comments(principal, complaint)
    # Append-only
    return False


# ---------------------------------------------------------------------------
# Public surface
# ---------------------------------------------------------------------------

def allow(principal: Optional[Principal], record: Optional[Record], operation: Operation) -> bool:
    """
    Decide whether ``principal`` may perform ``operation`` on ``record``.

    Args:
        principal: Authenticated caller (None denies everything)
        record: ORM row or CommentDraft (None denies everything)
        operation: One of read/insert/update/delete

    Returns:
        True if any rule clause grants access
    """
    if principal is None or record is None:
        return False
    if isinstance(record, Profile):
        return _profile_rule(principal, record, operation)
    if isinstance(record, UserRoleRecord):
        return _role_rule(principal, record, operation)
    if isinstance(record, Complaint):
        return _complaint_rule(principal, record, operation)
    if isinstance(record, (Comment, CommentDraft)):
        return _comment_rule(principal, record, operation)
    return False


def enforce(principal: Optional[Principal], record: Optional[Record], operation: Operation) -> None:
    """Raise AccessDenied unless ``allow`` grants the operation."""
    if not allow(principal, record, operation):
        logger.warning(
            f"Denied {operation.value} on {type(record).__name__ if record is not None else 'missing row'} "
            f"for user {principal.id if principal else 'anonymous'}"
        )
        raise AccessDenied()
