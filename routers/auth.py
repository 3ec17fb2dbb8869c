"""
Authentication endpoints: sign-up, login, token refresh and current user.
"""
from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy.orm import Session
from pydantic import BaseModel, EmailStr
from typing import Optional

from database.models import User
from auth.dependencies import get_db_session, get_current_user
from auth.security import decode_refresh_token
from services.auth_service import AuthService
from services.audit_service import AuditService, AuditAction
from core.logger import logger
import config


router = APIRouter(prefix="/api/auth", tags=["authentication"])


# Request Models
class SignUpRequest(BaseModel):
    """Sign-up request. Every new account starts as a student."""
    email: EmailStr
    password: str
    full_name: Optional[str] = None


class LoginRequest(BaseModel):
    """Login request."""
    email: EmailStr
    password: str


class RefreshTokenRequest(BaseModel):
    """Refresh token request."""
    refresh_token: str


class TokenResponse(BaseModel):
    """Token response model."""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    user: dict


def _user_info(db: Session, user: User) -> dict:
    role = AuthService.resolve_role(db, user.id)
    return {
        "id": user.id,
        "email": user.email,
        "full_name": user.profile.full_name if user.profile else None,
        "role": role.value,
        "is_active": user.is_active,
        "created_at": user.created_at.isoformat(),
        "last_login": user.last_login.isoformat() if user.last_login else None
    }


def _token_response(db: Session, user: User) -> TokenResponse:
    access_token, refresh_token = AuthService.create_tokens(user)
    return TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=config.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=_user_info(db, user)
    )


@router.post("/signup", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def sign_up(
    data: SignUpRequest,
    request: Request,
    db: Session = Depends(get_db_session)
):
    """
    Create an account (profile + student role) and log it in.
    """
    user = AuthService.sign_up(
        db=db,
        email=data.email,
        password=data.password,
        full_name=data.full_name
    )

    AuditService.log_from_request(
        db=db,
        request=request,
        action=AuditAction.SIGN_UP,
        user_id=user.id,
        resource_type="user",
        resource_id=user.id
    )

    return _token_response(db, user)


@router.post("/login", response_model=TokenResponse)
def login(
    credentials: LoginRequest,
    request: Request,
    db: Session = Depends(get_db_session)
):
    """
    Login with email + password.
    Returns JWT tokens and user info.
    """
    user = AuthService.authenticate_user(
        db=db,
        email=credentials.email,
        password=credentials.password
    )

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password"
        )

    AuditService.log_from_request(
        db=db,
        request=request,
        action=AuditAction.LOGIN,
        user_id=user.id,
        resource_type="user",
        resource_id=user.id
    )
    logger.info(f"User logged in: {user.email}")

    return _token_response(db, user)


@router.post("/refresh", response_model=TokenResponse)
def refresh_token(
    token_data: RefreshTokenRequest,
    db: Session = Depends(get_db_session)
):
    """Issue a new token pair from a valid refresh token."""
    payload = decode_refresh_token(token_data.refresh_token, config.SECRET_KEY)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token"
        )

    user = AuthService.get_user_by_id(db, payload.get("sub"))
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive"
        )

    return _token_response(db, user)


@router.get("/me", response_model=dict)
def get_current_user_info(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    """Current account with its profile and resolved role."""
    return _user_info(db, current_user)
