from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession
from dao.user_dao import UserDAO
from models.user import User
from services.db import get_db
from services.errors import InputValidationError, NotAuthenticatedError, NotAuthorizedError
from services.security import security_config, SecurityUtils
import logging

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
# auto_error=False so anonymous requests reach the handler and the viewer can be None
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/users/login", auto_error=False)

# Verified against on unknown emails so both paths cost one bcrypt round
_DUMMY_HASH = pwd_context.hash("dummy-password-for-timing")

def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)

def get_password_hash(password: str) -> str:
    """Hash password using bcrypt."""
    return pwd_context.hash(password)

def validate_password(password: str) -> str:
    if len(password) < security_config.password_min_length:
        raise InputValidationError(
            f"Password must be at least {security_config.password_min_length} characters long"
        )
    if len(password.encode("utf-8")) > 72:
        raise InputValidationError("Password cannot exceed 72 bytes")
    if not any(c.isalpha() for c in password) or not any(c.isdigit() for c in password):
        raise InputValidationError("Password must contain letters and digits")
    return password

def create_access_token(user_id: int, expires_delta: timedelta = None) -> str:
    """
    Create a JWT access token whose subject is the user id.
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=security_config.jwt_access_token_expire_minutes))
    to_encode = {
        "sub": str(user_id),
        "exp": expire,
        "iat": now,
        "type": "access"
    }
    return jwt.encode(to_encode, security_config.jwt_secret_key, algorithm=security_config.jwt_algorithm)

def create_refresh_token(user_id: int) -> str:
    """
    Create JWT refresh token with longer expiration.
    """
    now = datetime.now(timezone.utc)
    to_encode = {
        "sub": str(user_id),
        "exp": now + timedelta(days=security_config.jwt_refresh_token_expire_days),
        "iat": now,
        "type": "refresh",
        "jti": SecurityUtils.generate_secure_token(16)
    }
    return jwt.encode(to_encode, security_config.jwt_secret_key, algorithm=security_config.jwt_algorithm)

def decode_token(token: str, expected_type: str = "access") -> Optional[int]:
    """User id carried by a valid token of the expected type, else None."""
    try:
        payload = jwt.decode(
            token,
            security_config.jwt_secret_key,
            algorithms=[security_config.jwt_algorithm]
        )
    except JWTError as e:
        logger.debug(f"JWT decode failed: {e}")
        return None

    subject = payload.get("sub")
    if payload.get("type") != expected_type or not subject:
        return None
    try:
        return int(subject)
    except (TypeError, ValueError):
        return None

async def resolve_token_user(db: AsyncSession, token: str, client_ip: str = None) -> User:
    """
    Load the active user a token was issued to.

    Raises:
        NotAuthenticatedError: the token is invalid or its user is gone
        NotAuthorizedError: the account is inactive
    """
    user_id = decode_token(token)
    if user_id is None:
        SecurityUtils.log_security_event("invalid_token", {}, client_ip=client_ip)
        raise NotAuthenticatedError("Invalid authentication credentials")

    user = await UserDAO(db).get_by_id(user_id)
    if not user:
        SecurityUtils.log_security_event("token_user_not_found", {}, user_id=user_id, client_ip=client_ip)
        raise NotAuthenticatedError("Invalid authentication credentials")

    if not user.is_active:
        SecurityUtils.log_security_event("inactive_user_token_use", {}, user_id=user_id, client_ip=client_ip)
        raise NotAuthorizedError("Account is inactive")
    return user

async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
    token: Optional[str] = Depends(oauth2_scheme)
) -> User:
    """Authenticated user; requests without a valid bearer token get a 401."""
    if not token:
        raise NotAuthenticatedError()
    return await resolve_token_user(db, token, SecurityUtils.get_client_ip(request))

async def get_optional_viewer(
    request: Request,
    db: AsyncSession = Depends(get_db),
    token: Optional[str] = Depends(oauth2_scheme)
) -> Optional[int]:
    """
    Viewer id, or None for anonymous requests. A token that is present but
    invalid is still rejected rather than treated as anonymous.
    """
    if not token:
        return None
    user = await resolve_token_user(db, token, SecurityUtils.get_client_ip(request))
    return user.id

async def authenticate_user(db: AsyncSession, email: str, password: str, client_ip: str = None) -> Optional[User]:
    """
    Check credentials with the same bcrypt cost whether or not the user exists.
    """
    email = email.strip().lower()
    user = await UserDAO(db).get_by_email(email)

    if user and verify_password(password, user.hashed_password):
        SecurityUtils.log_security_event("successful_login", {}, user_id=user.id, client_ip=client_ip)
        return user

    if user is None:
        verify_password(password, _DUMMY_HASH)
    SecurityUtils.log_security_event(
        "failed_login",
        {"reason": "wrong_password" if user else "user_not_found"},
        user_id=user.id if user else None,
        client_ip=client_ip
    )
    return None
