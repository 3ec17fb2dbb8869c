"""
Security utilities for authentication: password hashing and JWT tokens.
"""
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, Tuple
from jose import JWTError, jwt
from passlib.context import CryptContext
import bcrypt
from fastapi.security import HTTPBearer

from core.logger import get_logger
import config

logger = get_logger(__name__)

# Password hashing
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__ident="2b",  # Use bcrypt 2b identifier
    bcrypt__rounds=12  # Standard rounds
)

# Security scheme
security = HTTPBearer()


# Password utilities
def validate_password(password: str) -> Tuple[bool, Optional[str]]:
    """
    Validate password strength.

    Requirements:
    - Minimum PASSWORD_MIN_LENGTH characters
    - At least 1 number
    - Maximum 72 bytes (bcrypt limit)

    Args:
        password: Password to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not password:
        return False, "Password is required"

    if len(password) < config.PASSWORD_MIN_LENGTH:
        return False, f"Password must be at least {config.PASSWORD_MIN_LENGTH} characters long"

    if len(password.encode('utf-8')) > 72:
        return False, "Password cannot be longer than 72 bytes. Please use a shorter password."

    if not any(char.isdigit() for char in password):
        return False, "Password must contain at least one number"

    return True, None


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash."""
    try:
        return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password.encode('utf-8'))
    except ValueError:
        # Hash not produced by bcrypt directly; let passlib identify it
        return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """
    Hash a password using bcrypt.

    Note: Password validation should be done before calling this function.
    Use validate_password() to check password requirements.
    """
    password_bytes = password.encode('utf-8')
    if len(password_bytes) > 72:
        raise ValueError("Password cannot be longer than 72 bytes. Please use a shorter password.")

    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(password_bytes, salt).decode('utf-8')


# JWT Token utilities
def _create_token(data: Dict[str, Any], secret_key: str, token_type: str, expires_delta: timedelta) -> str:
    to_encode = data.copy()
    now = datetime.utcnow()
    to_encode.update({
        "exp": now + expires_delta,
        "iat": now,
        "type": token_type
    })
    return jwt.encode(to_encode, secret_key, algorithm=config.ALGORITHM)


def create_access_token(
    data: Dict[str, Any],
    secret_key: str,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a JWT access token.

    Args:
        data: Data to encode in token
        secret_key: Secret key for signing
        expires_delta: Optional expiration time

    Returns:
        Encoded JWT token
    """
    return _create_token(
        data, secret_key, "access",
        expires_delta or timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)
    )


def create_refresh_token(
    data: Dict[str, Any],
    secret_key: str,
    expires_delta: Optional[timedelta] = None
) -> str:
    """Create a JWT refresh token."""
    return _create_token(
        data, secret_key, "refresh",
        expires_delta or timedelta(days=config.REFRESH_TOKEN_EXPIRE_DAYS)
    )


def _decode_token(token: str, secret_key: str, token_type: str) -> Optional[Dict[str, Any]]:
    try:
        payload = jwt.decode(token, secret_key, algorithms=[config.ALGORITHM])
    except JWTError as e:
        logger.debug(f"Rejected {token_type} token: {e}")
        return None
    if payload.get("type") != token_type:
        return None
    return payload


def decode_access_token(token: str, secret_key: str) -> Optional[Dict[str, Any]]:
    """
    Decode and verify a JWT access token.

    Returns:
        Decoded token data or None if invalid
    """
    return _decode_token(token, secret_key, "access")


def decode_refresh_token(token: str, secret_key: str) -> Optional[Dict[str, Any]]:
    """Decode and verify a JWT refresh token."""
    return _decode_token(token, secret_key, "refresh")
