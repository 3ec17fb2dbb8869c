"""
User and Role Management APIs (Admin).
"""
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import Optional, List

from database.models import UserRoleRecord
from auth.dependencies import get_db_session, get_current_principal, require_admin
from services.policy import Principal
from services.identity_service import IdentityService
from services.audit_service import AuditService, AuditAction
from core.validators import parse_role


router = APIRouter(prefix="/api/users", tags=["users"])


# Request/Response Models
class RoleUpdate(BaseModel):
    """Promote / demote request."""
    role: str


class RoleResponse(BaseModel):
    """Role record response."""
    id: str
    userId: str
    role: str
    createdAt: str


class UserListResponse(BaseModel):
    """User list response."""
    data: List[dict]
    total: int
    page: int
    limit: int


def _role_response(record: UserRoleRecord) -> RoleResponse:
    return RoleResponse(
        id=record.id,
        userId=record.user_id,
        role=record.role.value,
        createdAt=record.created_at.isoformat()
    )


@router.get("", response_model=UserListResponse)
def list_users(
    role: Optional[str] = Query(None, description="Filter by role"),
    search: Optional[str] = Query(None, description="Search by name or email"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    """
    List users joined with their role (paginated, filterable).
    Admin only.
    """
    rows = IdentityService.list_users(db, principal)

    if role:
        role_enum = parse_role(role)
        rows = [(p, r) for p, r in rows if r == role_enum]

    if search:
        needle = search.casefold()
        rows = [
            (p, r) for p, r in rows
            if needle in p.full_name.casefold() or needle in p.email.casefold()
        ]

    total = len(rows)
    offset = (page - 1) * limit

    user_list = []
    for profile, user_role in rows[offset:offset + limit]:
        user_list.append({
            "id": profile.id,
            "email": profile.email,
            "fullName": profile.full_name,
            "role": user_role.value,
            "createdAt": profile.created_at.isoformat(),
            "updatedAt": profile.updated_at.isoformat()
        })

    return UserListResponse(
        data=user_list,
        total=total,
        page=page,
        limit=limit
    )


@router.get("/staff", response_model=List[dict])
def list_staff(
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    """
    Staff directory used for assignment.
    Admin only.
    """
    return [
        {"id": p.id, "fullName": p.full_name, "email": p.email}
        for p in IdentityService.list_staff(db, principal)
    ]


@router.get("/{user_id}/role", response_model=RoleResponse)
def get_user_role(
    user_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_session)
):
    """
    Get a user's role record.
    Own record, or any record for admins.
    """
    return _role_response(IdentityService.get_role(db, principal, user_id))


@router.put("/{user_id}/role", response_model=RoleResponse)
def set_user_role(
    user_id: str,
    role_data: RoleUpdate,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_session)
):
    """
    Promote or demote a user.
    Admin only.
    """
    record = IdentityService.set_role(db, principal, user_id, parse_role(role_data.role))

    AuditService.log_from_request(
        db=db,
        request=request,
        action=AuditAction.ROLE_UPDATE,
        user_id=principal.id,
        resource_type="user_role",
        resource_id=record.id,
        details={"target": user_id, "role": record.role.value}
    )

    return _role_response(record)


@router.delete("/{user_id}")
def delete_user(
    user_id: str,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_session)
):
    """
    Delete a user together with their complaints and comments.
    Admin only.
    """
    IdentityService.delete_user(db, principal, user_id)

    AuditService.log_from_request(
        db=db,
        request=request,
        action=AuditAction.USER_DELETE,
        user_id=principal.id,
        resource_type="user",
        resource_id=user_id
    )

    return {"success": True}
