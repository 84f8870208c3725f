"""Recording substitutions for an absence, manually or by greedy auto-assignment.

Each assignment commits on its own. The composite unique constraints on
``substitutions`` and ``break_supervision_substitutions`` are authoritative;
the existence pre-check only produces a nicer error earlier.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from coverdesk.core.config import get_settings
from coverdesk.core.exceptions import ConflictError, NotFoundError, ValidationError
from coverdesk.models.absence import Absence, AbsenceStatus
from coverdesk.models.substitution import (
    BreakSupervisionSubstitution,
    Substitution,
    SubstitutionType,
    SupervisionSubstitutionType,
)
from coverdesk.models.supervision import BreakSupervisionDuty
from coverdesk.models.teacher import Teacher
from coverdesk.models.timetable import Period, ScheduledLesson
from coverdesk.models.user import User
from coverdesk.services.absences import get_absence
from coverdesk.services.affected_items import resolve_affected
from coverdesk.services.audit import log_activity
from coverdesk.services.candidate_ranking import rank_substitutes
from coverdesk.services.coverage_status import refresh_absence_status
from coverdesk.services.notifications import notify_lesson_substitute, notify_supervision_substitute

logger = logging.getLogger(__name__)

MONEY_QUANTUM = Decimal("0.01")


@dataclass
class AutoAssignResult:
    assigned: int = 0
    failed: int = 0
    status: AbsenceStatus | None = None
    substitution_ids: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class DailySubstitution:
    substitution_id: str
    absence_id: str
    period_number: int
    period_name: str
    time_range: str
    subject_names: tuple[str, ...]
    class_names: tuple[str, ...]
    room_label: str
    absent_teacher_name: str | None
    substitute_teacher_id: str | None
    substitute_teacher_name: str | None
    substitution_type: SubstitutionType
    notes: str | None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _lesson_hours(period: Period) -> Decimal:
    return (Decimal(period.duration_minutes) / Decimal(60)).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def _existing_substitution(db: Session, absence_id: str, scheduled_lesson_id: str) -> Substitution | None:
    return db.execute(
        select(Substitution).where(
            Substitution.absence_id == absence_id,
            Substitution.scheduled_lesson_id == scheduled_lesson_id,
        )
    ).scalar_one_or_none()


def _existing_supervision_substitution(
    db: Session, absence_id: str, duty_id: str
) -> BreakSupervisionSubstitution | None:
    return db.execute(
        select(BreakSupervisionSubstitution).where(
            BreakSupervisionSubstitution.absence_id == absence_id,
            BreakSupervisionSubstitution.break_supervision_duty_id == duty_id,
        )
    ).scalar_one_or_none()


def _resolve_substitute(db: Session, substitute_teacher_id: str | None) -> Teacher | None:
    if not substitute_teacher_id:
        return None
    substitute = db.get(Teacher, substitute_teacher_id)
    if substitute is None:
        raise ValidationError(
            "Substitute teacher does not exist",
            details={"substitute_teacher_id": substitute_teacher_id},
        )
    return substitute


# Constraint, bootstrap index or SQLite column-list text naming each duplicate-assignment key.
LESSON_DUPLICATE_MARKERS = (
    "uq_substitution_absence_lesson",
    "ux_substitutions_absence_lesson",
    "substitutions.absence_id, substitutions.scheduled_lesson_id",
)
SUPERVISION_DUPLICATE_MARKERS = (
    "uq_supervision_substitution_absence_duty",
    "ux_supervision_substitutions_absence_duty",
    "break_supervision_substitutions.absence_id, break_supervision_substitutions.break_supervision_duty_id",
)


def is_duplicate_assignment(exc: IntegrityError, markers: tuple[str, ...]) -> bool:
    message = str(exc.orig)
    return any(marker in message for marker in markers)


def _commit_new_row(db: Session, record, *, markers: tuple[str, ...], conflict_details: dict) -> None:
    db.add(record)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        if not is_duplicate_assignment(exc, markers):
            raise
        raise ConflictError(details=conflict_details) from exc


def assign_substitute(
    db: Session,
    *,
    absence_id: str,
    scheduled_lesson_id: str,
    substitute_teacher_id: str | None = None,
    coverage_type: SubstitutionType = SubstitutionType.teacher_substitute,
    actor: User | None = None,
    notes: str | None = None,
    pay_rate: Decimal | None = None,
) -> Substitution:
    absence = get_absence(db, absence_id)
    scheduled = db.get(ScheduledLesson, scheduled_lesson_id)
    if scheduled is None:
        raise NotFoundError("Scheduled lesson", scheduled_lesson_id)

    conflict_details = {"absence_id": absence_id, "scheduled_lesson_id": scheduled_lesson_id}
    existing = _existing_substitution(db, absence_id, scheduled_lesson_id)
    if existing is not None:
        raise ConflictError(details={**conflict_details, "substitution_id": existing.id})

    substitute = _resolve_substitute(db, substitute_teacher_id)

    hours = _lesson_hours(scheduled.period)
    rate = pay_rate
    if rate is None and substitute is not None:
        rate = substitute.substitution_hourly_rate
    total_pay = (hours * rate).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP) if rate is not None else None

    record = Substitution(
        absence_id=absence_id,
        scheduled_lesson_id=scheduled_lesson_id,
        substitute_teacher_id=substitute.id if substitute is not None else None,
        substitution_type=coverage_type,
        notes=(notes or "").strip() or None,
        assigned_at=_utc_now(),
        assigned_by_id=actor.id if actor is not None else None,
        email_sent=False,
        hours_worked=hours,
        pay_rate=rate,
        total_pay=total_pay,
    )
    _commit_new_row(db, record, markers=LESSON_DUPLICATE_MARKERS, conflict_details=conflict_details)

    log_activity(
        db,
        user=actor,
        action="substitution.assign",
        entity_type="substitution",
        entity_id=record.id,
        details={**conflict_details, "substitute_teacher_id": record.substitute_teacher_id, "type": coverage_type.value},
    )
    refresh_absence_status(db, absence)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if not is_duplicate_assignment(exc, LESSON_DUPLICATE_MARKERS):
            raise
        raise ConflictError(details=conflict_details) from exc
    db.refresh(record)
    logger.info(
        "Substitution %s: lesson %s of absence %s covered by %s (%s)",
        record.id,
        scheduled_lesson_id,
        absence_id,
        record.substitute_teacher_id or "nobody",
        coverage_type.value,
    )

    if coverage_type == SubstitutionType.teacher_substitute and substitute is not None and substitute.email:
        delivered = notify_lesson_substitute(
            substitute,
            on_date=absence.date,
            scheduled=scheduled,
            absent_teacher=db.get(Teacher, absence.teacher_id),
            notes=record.notes,
        )
        if delivered:
            record.email_sent = True
            record.email_sent_at = _utc_now()
            db.commit()
            db.refresh(record)
    return record


def assign_supervision_substitute(
    db: Session,
    *,
    absence_id: str,
    duty_id: str,
    substitute_teacher_id: str | None = None,
    coverage_type: SupervisionSubstitutionType = SupervisionSubstitutionType.teacher_substitute,
    actor: User | None = None,
    notes: str | None = None,
) -> BreakSupervisionSubstitution:
    absence = get_absence(db, absence_id)
    duty = db.get(BreakSupervisionDuty, duty_id)
    if duty is None:
        raise NotFoundError("Break supervision duty", duty_id)

    conflict_details = {"absence_id": absence_id, "break_supervision_duty_id": duty_id}
    existing = _existing_supervision_substitution(db, absence_id, duty_id)
    if existing is not None:
        raise ConflictError(details={**conflict_details, "substitution_id": existing.id})

    substitute = _resolve_substitute(db, substitute_teacher_id)
    record = BreakSupervisionSubstitution(
        absence_id=absence_id,
        break_supervision_duty_id=duty_id,
        substitute_teacher_id=substitute.id if substitute is not None else None,
        substitution_type=coverage_type,
        date=absence.date,
        notes=(notes or "").strip() or None,
        assigned_at=_utc_now(),
        assigned_by_id=actor.id if actor is not None else None,
        email_sent=False,
    )
    _commit_new_row(db, record, markers=SUPERVISION_DUPLICATE_MARKERS, conflict_details=conflict_details)

    log_activity(
        db,
        user=actor,
        action="supervision_substitution.assign",
        entity_type="break_supervision_substitution",
        entity_id=record.id,
        details={**conflict_details, "substitute_teacher_id": record.substitute_teacher_id, "type": coverage_type.value},
    )
    refresh_absence_status(db, absence)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if not is_duplicate_assignment(exc, SUPERVISION_DUPLICATE_MARKERS):
            raise
        raise ConflictError(details=conflict_details) from exc
    db.refresh(record)
    logger.info(
        "Supervision substitution %s: duty %s of absence %s covered by %s (%s)",
        record.id,
        duty_id,
        absence_id,
        record.substitute_teacher_id or "nobody",
        coverage_type.value,
    )

    if (
        coverage_type == SupervisionSubstitutionType.teacher_substitute
        and substitute is not None
        and substitute.email
    ):
        period = db.execute(select(Period).where(Period.period_number == duty.period_number)).scalar_one_or_none()
        delivered = notify_supervision_substitute(
            substitute,
            on_date=absence.date,
            duty=duty,
            period=period,
            absent_teacher=db.get(Teacher, absence.teacher_id),
            notes=record.notes,
        )
        if delivered:
            record.email_sent = True
            record.email_sent_at = _utc_now()
            db.commit()
            db.refresh(record)
    return record


def auto_assign_all(
    db: Session,
    *,
    absence_id: str,
    actor: User | None = None,
    minimum_score: int | None = None,
) -> AutoAssignResult:
    """Greedily give each open lesson its best-ranked candidate above the threshold.

    Substitutes are not reserved across lessons of the same run; the busy filter
    in the ranking keeps a teacher from being picked twice for one period.
    """
    threshold = get_settings().auto_assign_minimum_score if minimum_score is None else minimum_score
    absence = get_absence(db, absence_id)
    absent_teacher_id = absence.teacher_id
    absence_date = absence.date

    affected = resolve_affected(db, absence)
    if affected.lessons:
        absence.status = AbsenceStatus.being_covered
        db.commit()

    result = AutoAssignResult(warnings=list(affected.warnings))
    for item in affected.open_lessons:
        candidates = rank_substitutes(
            db,
            absent_teacher_id=absent_teacher_id,
            scheduled_lesson_id=item.scheduled_lesson_id,
            sort_key="score",
            on_date=absence_date,
        )
        best = candidates[0] if candidates else None
        if best is None or best.score < threshold:
            result.failed += 1
            logger.warning(
                "No candidate reached score %s for lesson %s (period %s) of absence %s",
                threshold,
                item.scheduled_lesson_id,
                item.period_number,
                absence_id,
            )
            continue

        try:
            record = assign_substitute(
                db,
                absence_id=absence_id,
                scheduled_lesson_id=item.scheduled_lesson_id,
                substitute_teacher_id=best.teacher_id,
                coverage_type=SubstitutionType.teacher_substitute,
                actor=actor,
                notes=f"Auto-assigned (match score: {best.score})",
            )
        except ConflictError:
            result.failed += 1
            logger.warning("Lesson %s of absence %s was assigned concurrently", item.scheduled_lesson_id, absence_id)
            continue
        result.assigned += 1
        result.substitution_ids.append(record.id)

    absence = get_absence(db, absence_id)
    result.status = refresh_absence_status(db, absence)
    log_activity(
        db,
        user=actor,
        action="absence.auto_assign",
        entity_type="absence",
        entity_id=absence_id,
        details={"assigned": result.assigned, "failed": result.failed, "minimum_score": threshold},
    )
    db.commit()
    logger.info(
        "Auto-assign for absence %s: %s assigned, %s failed, status %s",
        absence_id,
        result.assigned,
        result.failed,
        result.status.value,
    )
    return result


def remove_substitution(db: Session, substitution_id: str, *, actor: User | None = None) -> AbsenceStatus:
    record = db.get(Substitution, substitution_id)
    if record is None:
        raise NotFoundError("Substitution", substitution_id)
    absence = get_absence(db, record.absence_id)
    db.delete(record)
    db.flush()
    status = refresh_absence_status(db, absence)
    log_activity(
        db,
        user=actor,
        action="substitution.remove",
        entity_type="substitution",
        entity_id=substitution_id,
        details={"absence_id": absence.id, "scheduled_lesson_id": record.scheduled_lesson_id},
    )
    db.commit()
    return status


def remove_supervision_substitution(db: Session, substitution_id: str, *, actor: User | None = None) -> AbsenceStatus:
    record = db.get(BreakSupervisionSubstitution, substitution_id)
    if record is None:
        raise NotFoundError("Break supervision substitution", substitution_id)
    absence = get_absence(db, record.absence_id)
    db.delete(record)
    db.flush()
    status = refresh_absence_status(db, absence)
    log_activity(
        db,
        user=actor,
        action="supervision_substitution.remove",
        entity_type="break_supervision_substitution",
        entity_id=substitution_id,
        details={"absence_id": absence.id, "break_supervision_duty_id": record.break_supervision_duty_id},
    )
    db.commit()
    return status


def list_daily_substitutions(db: Session, on_date: date) -> list[DailySubstitution]:
    rows = db.execute(
        select(Substitution, Absence, ScheduledLesson)
        .join(Absence, Absence.id == Substitution.absence_id)
        .join(ScheduledLesson, ScheduledLesson.id == Substitution.scheduled_lesson_id)
        .where(Absence.date == on_date)
    ).unique().all()

    teacher_ids = {absence.teacher_id for _, absence, _ in rows}
    teacher_ids.update(item.substitute_teacher_id for item, _, _ in rows if item.substitute_teacher_id)
    names = {
        item.id: item.name
        for item in db.execute(select(Teacher).where(Teacher.id.in_(teacher_ids))).scalars()
    } if teacher_ids else {}

    entries = [
        DailySubstitution(
            substitution_id=substitution.id,
            absence_id=absence.id,
            period_number=scheduled.period.period_number,
            period_name=scheduled.period.name,
            time_range=scheduled.period.time_range,
            subject_names=tuple(sorted(item.name for item in scheduled.lesson.subjects)),
            class_names=tuple(sorted(item.name for item in scheduled.lesson.classes)),
            room_label=scheduled.room_label,
            absent_teacher_name=names.get(absence.teacher_id),
            substitute_teacher_id=substitution.substitute_teacher_id,
            substitute_teacher_name=names.get(substitution.substitute_teacher_id)
            if substitution.substitute_teacher_id
            else None,
            substitution_type=substitution.substitution_type,
            notes=substitution.notes,
        )
        for substitution, absence, scheduled in rows
    ]
    entries.sort(key=lambda item: (item.period_number, item.absent_teacher_name or "", item.substitution_id))
    return entries
