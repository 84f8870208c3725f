from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from coverdesk.api.deps import get_current_user, get_db, require_roles
from coverdesk.models.user import User, UserRole
from coverdesk.schemas.substitution import DailySubstitutionOut, RemovalOut
from coverdesk.services.assignment import (
    list_daily_substitutions,
    remove_substitution,
    remove_supervision_substitution,
)

router = APIRouter()


@router.get("/substitutions/daily", response_model=list[DailySubstitutionOut])
def daily_substitutions(
    on_date: date = Query(alias="date"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[DailySubstitutionOut]:
    return [DailySubstitutionOut.model_validate(item) for item in list_daily_substitutions(db, on_date)]


@router.delete("/substitutions/{substitution_id}", response_model=RemovalOut)
def delete_substitution(
    substitution_id: str,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.scheduler)),
    db: Session = Depends(get_db),
) -> RemovalOut:
    absence_status = remove_substitution(db, substitution_id, actor=current_user)
    return RemovalOut(id=substitution_id, absence_status=absence_status)


@router.delete("/supervision-substitutions/{substitution_id}", response_model=RemovalOut)
def delete_supervision_substitution(
    substitution_id: str,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.scheduler)),
    db: Session = Depends(get_db),
) -> RemovalOut:
    absence_status = remove_supervision_substitution(db, substitution_id, actor=current_user)
    return RemovalOut(id=substitution_id, absence_status=absence_status)
