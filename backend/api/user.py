from fastapi import APIRouter, Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession
from schemas.user import UserCreate, UserOut, Token
from services.db import get_db
from models.user import User
from dao.user_dao import UserDAO
from services.auth import (
    get_password_hash, create_access_token, create_refresh_token,
    get_current_user, authenticate_user, validate_password
)
from services.security import SecurityUtils
import logging

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def register(user_in: UserCreate, request: Request, db: AsyncSession = Depends(get_db)):
    """Register a new account. The profile is created separately after signup."""
    client_ip = SecurityUtils.get_client_ip(request)
    email = user_in.email.strip().lower()
    validate_password(user_in.password)

    dao = UserDAO(db)
    if await dao.get_by_email(email):
        SecurityUtils.log_security_event("duplicate_registration_attempt", {}, client_ip=client_ip)
        # Generic error to avoid user enumeration
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Registration failed. Please check your information."
        )

    created_user = await dao.create_user(
        User(email=email, hashed_password=get_password_hash(user_in.password))
    )
    SecurityUtils.log_security_event(
        "user_registration_success", {}, user_id=created_user.id, client_ip=client_ip
    )
    return created_user

@router.post("/login", response_model=Token)
async def login(request: Request, form_data: OAuth2PasswordRequestForm = Depends(),
                db: AsyncSession = Depends(get_db)):
    """OAuth2 password flow; ``username`` carries the email."""
    client_ip = SecurityUtils.get_client_ip(request)
    user = await authenticate_user(db, form_data.username, form_data.password, client_ip)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is inactive")

    return Token(
        access_token=create_access_token(user.id),
        refresh_token=create_refresh_token(user.id),
        token_type="bearer",
    )

@router.get("/me", response_model=UserOut)
async def read_me(current_user: User = Depends(get_current_user)):
    return current_user
