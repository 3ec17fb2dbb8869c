"""
Profile APIs (All Authenticated Users).
"""
from typing import Optional, List

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from pydantic import BaseModel, EmailStr

from database.models import Profile
from auth.dependencies import get_db_session, get_current_principal
from services.policy import Principal
from services.identity_service import IdentityService
from services.audit_service import AuditService, AuditAction


router = APIRouter(prefix="/api/profiles", tags=["profiles"])


class ProfileUpdate(BaseModel):
    """Update profile request."""
    fullName: Optional[str] = None
    email: Optional[EmailStr] = None


class ProfileResponse(BaseModel):
    """Profile response model."""
    id: str
    fullName: str
    email: str
    createdAt: str
    updatedAt: str


def _to_response(profile: Profile) -> ProfileResponse:
    return ProfileResponse(
        id=profile.id,
        fullName=profile.full_name,
        email=profile.email,
        createdAt=profile.created_at.isoformat(),
        updatedAt=profile.updated_at.isoformat()
    )


@router.get("", response_model=List[ProfileResponse])
def list_profiles(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_session)
):
    """
    List every profile.
    All authenticated users.
    """
    return [_to_response(p) for p in IdentityService.list_profiles(db, principal)]


@router.get("/{profile_id}", response_model=ProfileResponse)
def get_profile(
    profile_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_session)
):
    """Get one profile."""
    return _to_response(IdentityService.get_profile(db, principal, profile_id))


@router.put("/{profile_id}", response_model=ProfileResponse)
def update_profile(
    profile_id: str,
    profile_data: ProfileUpdate,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_session)
):
    """
    Update a profile.
    Owner only.
    """
    profile = IdentityService.update_profile(
        db,
        principal,
        profile_id,
        full_name=profile_data.fullName,
        email=profile_data.email
    )

    AuditService.log_from_request(
        db=db,
        request=request,
        action=AuditAction.PROFILE_UPDATE,
        user_id=principal.id,
        resource_type="profile",
        resource_id=profile.id,
        details=profile_data.model_dump(exclude_none=True)
    )

    return _to_response(profile)
