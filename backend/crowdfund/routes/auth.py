"""Authentication routes — signup, login, token refresh, current user."""

from __future__ import annotations

import logging
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..constants import ROLE_INVESTOR, ROLE_STARTUP
from ..database import get_db
from ..models.startup import Startup
from ..models.user import User
from ..schemas.auth_schema import (
    AuthResponse,
    LoginRequest,
    MessageResponse,
    SignupRequest,
    UserPublic,
)
from ..services.auth_dependency import get_current_user
from ..services.auth_utils import create_access_token, hash_password, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


# ===================================================================== #
#  Utility: build UserPublic from ORM                                     #
# ===================================================================== #

def _user_public(user: User) -> UserPublic:
    return UserPublic(
        id=str(user.id),
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        role=user.role,
        is_active=user.is_active,
        startup_id=str(user.startup.id) if user.startup is not None else None,
    )


# ===================================================================== #
#  Local auth                                                             #
# ===================================================================== #

@router.post(
    "/signup",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new account",
)
def signup(payload: SignupRequest, db: Session = Depends(get_db)) -> MessageResponse:
    """Create a startup, investor, or committee account."""
    existing = db.query(User).filter(User.email == payload.email).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An account with this email already exists",
        )

    user = User(
        id=uuid4(),
        email=payload.email,
        first_name=payload.first_name.strip(),
        last_name=payload.last_name.strip(),
        role=payload.role,
        phone=payload.phone,
        hashed_password=hash_password(payload.password),
        is_active=True,
    )
    if payload.role == ROLE_INVESTOR:
        user.investor_type = payload.investor_type
        user.investment_capacity = payload.investment_capacity
    db.add(user)

    if payload.role == ROLE_STARTUP:
        db.add(
            Startup(
                id=uuid4(),
                user_id=user.id,
                company_name=payload.company_name.strip(),
                sector=(payload.sector or "").strip(),
                tax_number=payload.tax_number,
            )
        )

    db.commit()

    logger.info("[AUTH] User signed up: %s (%s)", user.email, user.role)
    return MessageResponse(message="Account created successfully. You can now log in.")


@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Log in with email, password and role",
)
def login(payload: LoginRequest, db: Session = Depends(get_db)) -> AuthResponse:
    """Authenticate a user for the selected role and issue a JWT."""
    user = db.query(User).filter(User.email == payload.email).first()
    if user is None or not verify_password(payload.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    # The login form asks which role the user signs in as; a mismatch is
    # reported exactly like bad credentials.
    if user.role != payload.role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated",
        )

    token = create_access_token(str(user.id), user.email, user.role)
    logger.info("[AUTH] User logged in: %s (%s)", user.email, user.role)
    return AuthResponse(
        access_token=token,
        user=_user_public(user),
    )


@router.post(
    "/refresh",
    response_model=AuthResponse,
    summary="Issue a fresh token for the current user",
)
def refresh(user: User = Depends(get_current_user)) -> AuthResponse:
    token = create_access_token(str(user.id), user.email, user.role)
    return AuthResponse(access_token=token, user=_user_public(user))


# ===================================================================== #
#  Protected: current user info                                           #
# ===================================================================== #

@router.get("/me", response_model=UserPublic, summary="Get current user")
def get_me(user: User = Depends(get_current_user)) -> UserPublic:
    """Return the authenticated user's public profile."""
    return _user_public(user)
