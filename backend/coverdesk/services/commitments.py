"""Read-only snapshots of who is committed where.

The rankers never touch the database: everything they need about candidates,
the target slot and existing commitments is loaded here into plain frozen
dataclasses keyed by id.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import date, time, timedelta
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from coverdesk.models.absence import Absence
from coverdesk.models.substitution import BreakSupervisionSubstitution, Substitution
from coverdesk.models.supervision import BreakSupervisionDuty
from coverdesk.models.teacher import Department, Teacher, TeacherAvailability, TeacherSubject
from coverdesk.models.timetable import Period, ScheduledLesson, lesson_subjects


@dataclass(frozen=True)
class TeacherSnapshot:
    id: str
    name: str
    email: str | None = None
    department_id: str | None = None
    department_name: str | None = None
    available_for_substitution: bool = False
    hourly_rate: Decimal | None = None
    qualification_notes: str | None = None
    subject_ids: frozenset[str] = frozenset()


@dataclass(frozen=True)
class LessonSlot:
    scheduled_lesson_id: str
    timetable_id: str
    day_of_week: int
    period_id: str
    period_number: int
    start_time: time
    end_time: time
    teacher_ids: frozenset[str] = frozenset()
    subject_ids: frozenset[str] = frozenset()
    subject_names: tuple[str, ...] = ()
    class_names: tuple[str, ...] = ()
    room_label: str = "TBA"

    @property
    def subject_label(self) -> str:
        return ", ".join(self.subject_names) or "subject"


@dataclass(frozen=True)
class DutySlot:
    duty_id: str
    timetable_id: str
    day_of_week: int
    period_number: int
    location: str
    teacher_id: str | None = None


@dataclass(frozen=True)
class Availability:
    importance: int
    reason: str | None = None


@dataclass
class CommitmentSnapshot:
    """Existing commitments for one weekday of one timetable, seen from one date."""

    teaching: dict[int, set[str]] = field(default_factory=lambda: defaultdict(set))
    reserve: dict[int, set[str]] = field(default_factory=lambda: defaultdict(set))
    covering: dict[int, set[str]] = field(default_factory=lambda: defaultdict(set))
    supervising: dict[int, dict[str, set[str]]] = field(
        default_factory=lambda: defaultdict(lambda: defaultdict(set))
    )
    supervision_covering: dict[int, set[str]] = field(default_factory=lambda: defaultdict(set))
    substitutions_this_week: Counter = field(default_factory=Counter)
    subject_history: dict[str, Counter] = field(default_factory=lambda: defaultdict(Counter))
    supervisions_per_week: Counter = field(default_factory=Counter)
    availability: dict[tuple[str, str], Availability] = field(default_factory=dict)
    absent_all_day: set[str] = field(default_factory=set)
    absent: dict[int, set[str]] = field(default_factory=lambda: defaultdict(set))

    def is_teaching(self, teacher_id: str, period_number: int) -> bool:
        return teacher_id in self.teaching.get(period_number, ())

    def is_covering(self, teacher_id: str, period_number: int) -> bool:
        return teacher_id in self.covering.get(period_number, ())

    def is_absent(self, teacher_id: str, period_number: int) -> bool:
        return teacher_id in self.absent_all_day or teacher_id in self.absent.get(period_number, ())

    def has_any_lesson(self, teacher_id: str, period_number: int) -> bool:
        # Reserve hours count here: a reserve lesson is still a lesson for supervision purposes.
        return (
            self.is_teaching(teacher_id, period_number)
            or teacher_id in self.reserve.get(period_number, ())
            or self.is_covering(teacher_id, period_number)
        )

    def holds_other_duty(self, teacher_id: str, period_number: int, duty_id: str) -> bool:
        held = self.supervising.get(period_number, {}).get(teacher_id, set())
        if any(item != duty_id for item in held):
            return True
        return teacher_id in self.supervision_covering.get(period_number, ())

    def availability_for(self, teacher_id: str, period_id: str) -> Availability | None:
        return self.availability.get((teacher_id, period_id))

    def previous_substitutions_in(self, teacher_id: str, subject_ids: frozenset[str]) -> int:
        history = self.subject_history.get(teacher_id)
        if not history:
            return 0
        return sum(history[subject_id] for subject_id in subject_ids)


def iso_week_bounds(on_date: date) -> tuple[date, date]:
    week_start = on_date - timedelta(days=on_date.weekday())
    return week_start, week_start + timedelta(days=6)


def teacher_snapshot(teacher: Teacher, *, department_name: str | None = None, subject_ids=()) -> TeacherSnapshot:
    return TeacherSnapshot(
        id=teacher.id,
        name=teacher.name,
        email=teacher.email,
        department_id=teacher.department_id,
        department_name=department_name,
        available_for_substitution=teacher.available_for_substitution,
        hourly_rate=teacher.substitution_hourly_rate,
        qualification_notes=(teacher.substitution_qualification_notes or "").strip() or None,
        subject_ids=frozenset(subject_ids),
    )


def load_teacher_snapshots(db: Session, *, active_only: bool = True) -> dict[str, TeacherSnapshot]:
    query = select(Teacher)
    if active_only:
        query = query.where(Teacher.is_active.is_(True))
    teachers = list(db.execute(query).scalars())
    if not teachers:
        return {}

    teacher_ids = [item.id for item in teachers]
    department_names = {item.id: item.name for item in db.execute(select(Department)).scalars()}
    qualifications: dict[str, set[str]] = defaultdict(set)
    for teacher_id, subject_id in db.execute(
        select(TeacherSubject.teacher_id, TeacherSubject.subject_id).where(
            TeacherSubject.teacher_id.in_(teacher_ids)
        )
    ):
        qualifications[teacher_id].add(subject_id)

    return {
        item.id: teacher_snapshot(
            item,
            department_name=department_names.get(item.department_id) if item.department_id else None,
            subject_ids=qualifications.get(item.id, ()),
        )
        for item in teachers
    }


def lesson_slot(scheduled: ScheduledLesson) -> LessonSlot:
    lesson = scheduled.lesson
    period = scheduled.period
    return LessonSlot(
        scheduled_lesson_id=scheduled.id,
        timetable_id=scheduled.timetable_id,
        day_of_week=scheduled.day_of_week,
        period_id=scheduled.period_id,
        period_number=period.period_number,
        start_time=period.start_time,
        end_time=period.end_time,
        teacher_ids=frozenset(lesson.teacher_ids),
        subject_ids=frozenset(lesson.subject_ids),
        subject_names=tuple(sorted(item.name for item in lesson.subjects)),
        class_names=tuple(sorted(item.name for item in lesson.classes)),
        room_label=scheduled.room_label,
    )


def duty_slot(duty: BreakSupervisionDuty) -> DutySlot:
    return DutySlot(
        duty_id=duty.id,
        timetable_id=duty.timetable_id,
        day_of_week=duty.day_of_week,
        period_number=duty.period_number,
        location=duty.location,
        teacher_id=duty.teacher_id,
    )


def load_commitments(
    db: Session,
    *,
    timetable_id: str,
    day_of_week: int,
    on_date: date,
) -> CommitmentSnapshot:
    snapshot = CommitmentSnapshot()

    lessons_on_day = db.execute(
        select(ScheduledLesson).where(
            ScheduledLesson.timetable_id == timetable_id,
            ScheduledLesson.day_of_week == day_of_week,
        )
    ).scalars()
    for scheduled in lessons_on_day:
        bucket = snapshot.reserve if scheduled.lesson.is_substitution_reserve else snapshot.teaching
        bucket[scheduled.period.period_number].update(scheduled.lesson.teacher_ids)

    for substitute_id, period_number in db.execute(
        select(Substitution.substitute_teacher_id, Period.period_number)
        .join(Absence, Absence.id == Substitution.absence_id)
        .join(ScheduledLesson, ScheduledLesson.id == Substitution.scheduled_lesson_id)
        .join(Period, Period.id == ScheduledLesson.period_id)
        .where(Absence.date == on_date, Substitution.substitute_teacher_id.is_not(None))
    ):
        snapshot.covering[period_number].add(substitute_id)

    week_start, week_end = iso_week_bounds(on_date)
    for (substitute_id,) in db.execute(
        select(Substitution.substitute_teacher_id)
        .join(Absence, Absence.id == Substitution.absence_id)
        .where(
            Absence.date >= week_start,
            Absence.date <= week_end,
            Substitution.substitute_teacher_id.is_not(None),
        )
    ):
        snapshot.substitutions_this_week[substitute_id] += 1

    for substitute_id, subject_id in db.execute(
        select(Substitution.substitute_teacher_id, lesson_subjects.c.subject_id)
        .join(ScheduledLesson, ScheduledLesson.id == Substitution.scheduled_lesson_id)
        .join(lesson_subjects, lesson_subjects.c.lesson_id == ScheduledLesson.lesson_id)
        .where(Substitution.substitute_teacher_id.is_not(None))
    ):
        snapshot.subject_history[substitute_id][subject_id] += 1

    for availability in db.execute(
        select(TeacherAvailability).where(TeacherAvailability.day_of_week == day_of_week)
    ).scalars():
        snapshot.availability[(availability.teacher_id, availability.period_id)] = Availability(
            importance=max(-3, min(3, availability.importance)),
            reason=availability.reason,
        )

    # Teachers with their own absence that day cannot cover; partial-day absences only block overlapping periods.
    periods = list(db.execute(select(Period)).scalars())
    for teacher_id, start_time, end_time in db.execute(
        select(Absence.teacher_id, Absence.start_time, Absence.end_time).where(Absence.date == on_date)
    ):
        if start_time is None or end_time is None:
            snapshot.absent_all_day.add(teacher_id)
            continue
        for period in periods:
            if period.start_time < end_time and period.end_time > start_time:
                snapshot.absent[period.period_number].add(teacher_id)

    duties = db.execute(
        select(BreakSupervisionDuty).where(
            BreakSupervisionDuty.timetable_id == timetable_id,
            BreakSupervisionDuty.is_active.is_(True),
            BreakSupervisionDuty.teacher_id.is_not(None),
        )
    ).scalars()
    for duty in duties:
        snapshot.supervisions_per_week[duty.teacher_id] += 1
        if duty.day_of_week == day_of_week:
            snapshot.supervising[duty.period_number][duty.teacher_id].add(duty.id)

    for substitute_id, period_number in db.execute(
        select(BreakSupervisionSubstitution.substitute_teacher_id, BreakSupervisionDuty.period_number)
        .join(
            BreakSupervisionDuty,
            BreakSupervisionDuty.id == BreakSupervisionSubstitution.break_supervision_duty_id,
        )
        .where(
            BreakSupervisionSubstitution.date == on_date,
            BreakSupervisionSubstitution.substitute_teacher_id.is_not(None),
        )
    ):
        snapshot.supervision_covering[period_number].add(substitute_id)

    return snapshot
