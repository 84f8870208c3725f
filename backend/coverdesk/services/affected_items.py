from __future__ import annotations

from dataclasses import dataclass, field
from datetime import time
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from coverdesk.models.absence import Absence
from coverdesk.models.substitution import BreakSupervisionSubstitution, Substitution
from coverdesk.models.supervision import BreakSupervisionDuty
from coverdesk.models.timetable import Period, ScheduledLesson, Timetable, TimetableStatus, lesson_teachers

logger = logging.getLogger(__name__)

NO_PUBLISHED_TIMETABLE_WARNING = "No published timetable found; no lessons or duties can be resolved."


@dataclass(frozen=True)
class AffectedLesson:
    scheduled_lesson_id: str
    period_id: str
    period_number: int
    period_name: str
    start_time: time
    end_time: time
    subject_names: tuple[str, ...]
    class_names: tuple[str, ...]
    room_label: str
    substitution_id: str | None = None

    @property
    def is_assigned(self) -> bool:
        return self.substitution_id is not None


@dataclass(frozen=True)
class AffectedDuty:
    duty_id: str
    period_number: int
    location: str
    start_time: time | None = None
    end_time: time | None = None
    substitution_id: str | None = None

    @property
    def is_assigned(self) -> bool:
        return self.substitution_id is not None


@dataclass
class AffectedItems:
    timetable_id: str | None
    lessons: list[AffectedLesson] = field(default_factory=list)
    duties: list[AffectedDuty] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def open_lessons(self) -> list[AffectedLesson]:
        return [item for item in self.lessons if not item.is_assigned]


def get_published_timetable(db: Session) -> Timetable | None:
    return db.execute(
        select(Timetable)
        .where(Timetable.status == TimetableStatus.published)
        .order_by(Timetable.created_at.desc(), Timetable.id.desc())
        .limit(1)
    ).scalar_one_or_none()


def _overlaps(start: time, end: time, window_start: time, window_end: time) -> bool:
    return start < window_end and end > window_start


def resolve_affected(db: Session, absence: Absence, *, timetable: Timetable | None = None) -> AffectedItems:
    """Lessons and supervision duties the absent teacher can no longer hold.

    The timetable defaults to the newest published one; a missing timetable is
    reported through ``warnings`` rather than raised.
    """
    if timetable is None:
        timetable = get_published_timetable(db)
    if timetable is None:
        logger.warning("Absence %s resolved against no published timetable", absence.id)
        return AffectedItems(timetable_id=None, warnings=[NO_PUBLISHED_TIMETABLE_WARNING])

    day_of_week = absence.date.weekday()
    partial_day = absence.is_partial_day

    existing_lessons = dict(
        db.execute(
            select(Substitution.scheduled_lesson_id, Substitution.id).where(
                Substitution.absence_id == absence.id
            )
        ).all()
    )
    existing_duties = dict(
        db.execute(
            select(
                BreakSupervisionSubstitution.break_supervision_duty_id,
                BreakSupervisionSubstitution.id,
            ).where(BreakSupervisionSubstitution.absence_id == absence.id)
        ).all()
    )

    scheduled_lessons = db.execute(
        select(ScheduledLesson)
        .join(lesson_teachers, lesson_teachers.c.lesson_id == ScheduledLesson.lesson_id)
        .where(
            ScheduledLesson.timetable_id == timetable.id,
            ScheduledLesson.day_of_week == day_of_week,
            lesson_teachers.c.teacher_id == absence.teacher_id,
        )
    ).scalars().unique()

    lessons: list[AffectedLesson] = []
    for scheduled in scheduled_lessons:
        period = scheduled.period
        if partial_day and not _overlaps(period.start_time, period.end_time, absence.start_time, absence.end_time):
            continue
        lessons.append(
            AffectedLesson(
                scheduled_lesson_id=scheduled.id,
                period_id=period.id,
                period_number=period.period_number,
                period_name=period.name,
                start_time=period.start_time,
                end_time=period.end_time,
                subject_names=tuple(sorted(item.name for item in scheduled.lesson.subjects)),
                class_names=tuple(sorted(item.name for item in scheduled.lesson.classes)),
                room_label=scheduled.room_label,
                substitution_id=existing_lessons.get(scheduled.id),
            )
        )
    lessons.sort(key=lambda item: (item.period_number, item.scheduled_lesson_id))

    periods_by_number = {item.period_number: item for item in db.execute(select(Period)).scalars()}
    duties: list[AffectedDuty] = []
    for duty in db.execute(
        select(BreakSupervisionDuty).where(
            BreakSupervisionDuty.timetable_id == timetable.id,
            BreakSupervisionDuty.day_of_week == day_of_week,
            BreakSupervisionDuty.teacher_id == absence.teacher_id,
            BreakSupervisionDuty.is_active.is_(True),
        )
    ).scalars():
        period = periods_by_number.get(duty.period_number)
        # Duties without a matching period have no time range and are always kept.
        if partial_day and period is not None:
            if not _overlaps(period.start_time, period.end_time, absence.start_time, absence.end_time):
                continue
        duties.append(
            AffectedDuty(
                duty_id=duty.id,
                period_number=duty.period_number,
                location=duty.location,
                start_time=period.start_time if period is not None else None,
                end_time=period.end_time if period is not None else None,
                substitution_id=existing_duties.get(duty.id),
            )
        )
    duties.sort(key=lambda item: (item.period_number, item.duty_id))

    return AffectedItems(timetable_id=timetable.id, lessons=lessons, duties=duties)
