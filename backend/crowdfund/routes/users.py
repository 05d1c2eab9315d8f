"""User directory routes (admin only)."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..constants import ROLE_ADMIN
from ..database import get_db
from ..models.user import User
from ..schemas.auth_schema import LoginRole, UserPublic
from ..services.auth_dependency import require_roles
from .auth import _user_public

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("", response_model=List[UserPublic], summary="List users, optionally by role")
def list_users(
    role: Optional[LoginRole] = Query(default=None),
    user: User = Depends(require_roles(ROLE_ADMIN)),
    db: Session = Depends(get_db),
) -> List[UserPublic]:
    query = db.query(User)
    if role is not None:
        query = query.filter(User.role == role)
    return [_user_public(u) for u in query.order_by(User.email.asc()).all()]
