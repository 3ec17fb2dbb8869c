"""
Complaint and comment APIs.

Every handler passes the caller's principal into the service layer, which
applies the row policy before touching storage.
"""
from typing import Optional, List

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session
from pydantic import BaseModel

from database.models import Complaint
from auth.dependencies import get_db_session, get_current_principal
from services.policy import Principal
from services.identity_service import IdentityService
from services.complaint_service import ComplaintService
from services.comment_service import CommentService
from services.audit_service import AuditService, AuditAction
from services.dashboard_composer import (
    ComplaintFilter, SortKey, build_view, build_views, filter_complaints, sort_complaints
)
from core.validators import parse_status


router = APIRouter(prefix="/api/complaints", tags=["complaints"])


# Request Models
class ComplaintCreate(BaseModel):
    """File a complaint."""
    title: str
    description: str
    category: str


class ComplaintUpdate(BaseModel):
    """Partial update; only fields present in the body are changed."""
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    status: Optional[str] = None
    assignedTo: Optional[str] = None


class StatusUpdate(BaseModel):
    status: str


class AssignRequest(BaseModel):
    staffId: str


class CommentCreate(BaseModel):
    message: str


def _complaint_dict(db: Session, complaint: Complaint) -> dict:
    emails = IdentityService.email_map(db, [complaint.student_id])
    return build_view(complaint, IdentityService.name_map(db), emails).to_dict()


def parse_filter(
    search: Optional[str],
    status_filter: Optional[str],
    assignee: Optional[str]
) -> ComplaintFilter:
    """Build a filter from query params; empty or "all" means no constraint."""
    def _unset(value: Optional[str]) -> bool:
        return value is None or value.strip() == "" or value.strip().lower() == "all"

    return ComplaintFilter(
        search=None if _unset(search) else search.strip(),
        status=None if _unset(status_filter) else parse_status(status_filter),
        assignee=None if _unset(assignee) else assignee.strip()
    )


@router.post("", status_code=status.HTTP_201_CREATED)
def create_complaint(
    data: ComplaintCreate,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_session)
):
    """
    File a complaint as the current user.
    Starts pending and unassigned.
    """
    complaint = ComplaintService.create(
        db,
        principal,
        title=data.title,
        description=data.description,
        category=data.category
    )

    AuditService.log_from_request(
        db=db,
        request=request,
        action=AuditAction.COMPLAINT_CREATE,
        user_id=principal.id,
        resource_type="complaint",
        resource_id=complaint.id
    )

    return _complaint_dict(db, complaint)


@router.get("", response_model=List[dict])
def list_complaints(
    search: Optional[str] = Query(None, description="Match title or student name"),
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by status"),
    assignee: Optional[str] = Query(None, description="Filter by assigned staff id"),
    sort: SortKey = Query(SortKey.NEWEST, description="newest, oldest, student or title"),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_session)
):
    """
    List every complaint visible to the current user.
    """
    views = build_views(ComplaintService.list_visible(db, principal), IdentityService.name_map(db))
    criteria = parse_filter(search, status_filter, assignee)
    return [v.to_dict() for v in sort_complaints(filter_complaints(views, criteria), sort)]


@router.get("/{complaint_id}")
def get_complaint(
    complaint_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_session)
):
    """Get one complaint."""
    return _complaint_dict(db, ComplaintService.get(db, principal, complaint_id))


@router.patch("/{complaint_id}")
def update_complaint(
    complaint_id: str,
    data: ComplaintUpdate,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_session)
):
    """
    Update complaint fields.
    Assigned staff or admin.
    """
    changes = data.model_dump(exclude_unset=True)
    if "assignedTo" in changes:
        changes["assigned_to"] = changes.pop("assignedTo")

    complaint = ComplaintService.update(db, principal, complaint_id, changes)

    AuditService.log_from_request(
        db=db,
        request=request,
        action=AuditAction.COMPLAINT_UPDATE,
        user_id=principal.id,
        resource_type="complaint",
        resource_id=complaint.id,
        details={k: (v if v is None or isinstance(v, str) else str(v)) for k, v in changes.items()}
    )

    return _complaint_dict(db, complaint)


@router.put("/{complaint_id}/status")
def update_complaint_status(
    complaint_id: str,
    data: StatusUpdate,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_session)
):
    """
    Change status from the detail page.
    Assigned staff or admin.
    """
    complaint = ComplaintService.update_status(db, principal, complaint_id, data.status)

    AuditService.log_from_request(
        db=db,
        request=request,
        action=AuditAction.COMPLAINT_UPDATE,
        user_id=principal.id,
        resource_type="complaint",
        resource_id=complaint.id,
        details={"status": complaint.status.value}
    )

    return _complaint_dict(db, complaint)


@router.post("/{complaint_id}/assign")
def assign_complaint(
    complaint_id: str,
    data: AssignRequest,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_session)
):
    """
    Assign to a staff member and move to in progress.
    Admin (or the current staff assignee).
    """
    complaint = ComplaintService.assign(db, principal, complaint_id, data.staffId)

    AuditService.log_from_request(
        db=db,
        request=request,
        action=AuditAction.COMPLAINT_ASSIGN,
        user_id=principal.id,
        resource_type="complaint",
        resource_id=complaint.id,
        details={"assigned_to": data.staffId}
    )

    return _complaint_dict(db, complaint)


@router.delete("/{complaint_id}")
def delete_complaint(
    complaint_id: str,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_session)
):
    """
    Delete a complaint and its comments.
    Admin only.
    """
    ComplaintService.delete(db, principal, complaint_id)

    AuditService.log_from_request(
        db=db,
        request=request,
        action=AuditAction.COMPLAINT_DELETE,
        user_id=principal.id,
        resource_type="complaint",
        resource_id=complaint_id
    )

    return {"success": True}


# Comments

@router.get("/{complaint_id}/comments", response_model=List[dict])
def list_comments(
    complaint_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_session)
):
    """Comment thread, oldest first."""
    return [
        {
            "id": comment.id,
            "complaintId": comment.complaint_id,
            "userId": comment.user_id,
            "authorName": author,
            "message": comment.message,
            "createdAt": comment.created_at.isoformat()
        }
        for comment, author in CommentService.list_for_complaint(db, principal, complaint_id)
    ]


@router.post("/{complaint_id}/comments", status_code=status.HTTP_201_CREATED)
def add_comment(
    complaint_id: str,
    data: CommentCreate,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_session)
):
    """Append a comment as the current user."""
    comment = CommentService.add(db, principal, complaint_id, data.message)

    AuditService.log_from_request(
        db=db,
        request=request,
        action=AuditAction.COMMENT_ADD,
        user_id=principal.id,
        resource_type="comment",
        resource_id=comment.id,
        details={"complaint_id": complaint_id}
    )

    return {
        "id": comment.id,
        "complaintId": comment.complaint_id,
        "userId": comment.user_id,
        "message": comment.message,
        "createdAt": comment.created_at.isoformat()
    }
