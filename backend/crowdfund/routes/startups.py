"""Startup directory routes: browse the companies raising on the platform."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..errors import NotFoundError
from ..models.startup import Startup
from ..models.user import User
from ..schemas.startup_schema import StartupDetail, StartupRecord
from ..services.auth_dependency import get_current_user
from ..timeutils import to_iso
from .auth import _user_public

router = APIRouter(prefix="/startups", tags=["Startups"])


def _startup_record(startup: Startup) -> StartupRecord:
    return StartupRecord(
        id=str(startup.id),
        user_id=str(startup.user_id),
        company_name=startup.company_name,
        sector=startup.sector or "",
        tax_number=startup.tax_number,
        description=startup.description or "",
        website=startup.website,
        founding_date=startup.founding_date,
        created_at=to_iso(startup.created_at),
    )


@router.get("", response_model=List[StartupRecord], summary="List startups")
def list_startups(
    sector: Optional[str] = Query(default=None, max_length=255),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> List[StartupRecord]:
    query = db.query(Startup)
    if sector:
        query = query.filter(Startup.sector == sector)
    return [_startup_record(s) for s in query.order_by(Startup.company_name.asc()).all()]


@router.get("/{startup_id}", response_model=StartupDetail, summary="Get a startup with its owner")
def get_startup(
    startup_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> StartupDetail:
    try:
        key = UUID(startup_id)
    except ValueError:
        key = None
    startup = db.query(Startup).filter(Startup.id == key).first() if key else None
    if startup is None:
        raise NotFoundError("Startup not found", startup_id=startup_id)
    owner = _user_public(startup.owner) if startup.owner is not None else None
    return StartupDetail(**_startup_record(startup).model_dump(), owner=owner)
