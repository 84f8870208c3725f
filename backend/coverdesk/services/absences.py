from __future__ import annotations

from datetime import date, datetime, time, timezone
from decimal import ROUND_HALF_UP, Decimal
import logging

from sqlalchemy.orm import Session

from coverdesk.core.config import get_settings
from coverdesk.core.exceptions import NotFoundError, ValidationError
from coverdesk.models.absence import Absence, AbsenceStatus, AbsenceType
from coverdesk.models.teacher import Teacher
from coverdesk.models.user import User
from coverdesk.services.audit import log_activity

logger = logging.getLogger(__name__)

HOURS_QUANTUM = Decimal("0.01")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _normalize_text(value: str | None) -> str | None:
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None


def _minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def absence_hours(start_time: time | None, end_time: time | None) -> Decimal:
    if start_time is None or end_time is None:
        hours = Decimal(str(get_settings().full_day_absence_hours))
    else:
        hours = Decimal(_minutes(end_time) - _minutes(start_time)) / Decimal(60)
    return hours.quantize(HOURS_QUANTUM, rounding=ROUND_HALF_UP)


def validate_time_bounds(start_time: time | None, end_time: time | None) -> None:
    if (start_time is None) != (end_time is None):
        raise ValidationError(
            "A partial-day absence needs both a start and an end time",
            details={"start_time": str(start_time) if start_time else None, "end_time": str(end_time) if end_time else None},
        )
    if start_time is not None and end_time is not None and start_time >= end_time:
        raise ValidationError(
            "Absence start time must be before its end time",
            details={"start_time": str(start_time), "end_time": str(end_time)},
        )


def get_absence(db: Session, absence_id: str) -> Absence:
    absence = db.get(Absence, absence_id)
    if absence is None:
        raise NotFoundError("Absence", absence_id)
    return absence


def report_absence(
    db: Session,
    *,
    teacher_id: str,
    absence_date: date,
    absence_type: AbsenceType,
    start_time: time | None = None,
    end_time: time | None = None,
    notes: str | None = None,
    reported_by: User | None = None,
) -> Absence:
    if db.get(Teacher, teacher_id) is None:
        raise NotFoundError("Teacher", teacher_id)
    validate_time_bounds(start_time, end_time)

    absence = Absence(
        teacher_id=teacher_id,
        date=absence_date,
        start_time=start_time,
        end_time=end_time,
        absence_type=absence_type,
        status=AbsenceStatus.reported,
        total_hours=absence_hours(start_time, end_time),
        notes=_normalize_text(notes),
        reported_by_id=reported_by.id if reported_by is not None else None,
        reported_at=_utc_now(),
    )
    db.add(absence)
    db.flush()
    log_activity(
        db,
        user=reported_by,
        action="absence.report",
        entity_type="absence",
        entity_id=absence.id,
        details={"teacher_id": teacher_id, "date": absence_date.isoformat(), "type": absence_type.value},
    )
    db.commit()
    db.refresh(absence)
    logger.info("Absence %s reported for teacher %s on %s", absence.id, teacher_id, absence_date)
    return absence


def confirm_absence(db: Session, absence_id: str, *, actor: User | None = None) -> Absence:
    absence = get_absence(db, absence_id)
    if absence.status == AbsenceStatus.confirmed:
        return absence
    if absence.status != AbsenceStatus.reported:
        raise ValidationError(
            "Only reported absences can be confirmed",
            details={"status": absence.status.value},
        )
    absence.status = AbsenceStatus.confirmed
    log_activity(db, user=actor, action="absence.confirm", entity_type="absence", entity_id=absence.id)
    db.commit()
    db.refresh(absence)
    return absence


def delete_absence(db: Session, absence_id: str, *, actor: User | None = None) -> None:
    absence = get_absence(db, absence_id)
    removed = len(absence.substitutions) + len(absence.supervision_substitutions)
    db.delete(absence)
    log_activity(
        db,
        user=actor,
        action="absence.delete",
        entity_type="absence",
        entity_id=absence_id,
        details={"removed_substitutions": removed},
    )
    db.commit()
    logger.info("Absence %s deleted with %s substitution(s)", absence_id, removed)
