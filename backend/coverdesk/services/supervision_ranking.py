from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable

from sqlalchemy.orm import Session

from coverdesk.core.exceptions import NotFoundError
from coverdesk.models.supervision import BreakSupervisionDuty
from coverdesk.models.teacher import Teacher
from coverdesk.services.commitments import (
    CommitmentSnapshot,
    DutySlot,
    TeacherSnapshot,
    duty_slot,
    load_commitments,
    load_teacher_snapshots,
    teacher_snapshot,
)

FREE_PERIOD_POINTS = 100
NO_SUPERVISIONS_POINTS = 30
LOW_SUPERVISION_WORKLOAD_POINTS = 15
LOW_SUPERVISION_WORKLOAD_LIMIT = 2
SAME_DEPARTMENT_POINTS = 20


@dataclass
class SupervisionCandidate:
    teacher_id: str
    name: str
    email: str | None
    department_name: str | None
    score: int = 0
    has_lesson_this_period: bool = False
    has_supervision_this_period: bool = False
    supervisions_this_week: int = 0
    is_same_department: bool = False
    match_reasons: list[str] = field(default_factory=list)


def score_supervision_candidate(
    teacher: TeacherSnapshot,
    duty: DutySlot,
    commitments: CommitmentSnapshot,
    absent: TeacherSnapshot | None = None,
) -> SupervisionCandidate:
    candidate = SupervisionCandidate(
        teacher_id=teacher.id,
        name=teacher.name,
        email=teacher.email,
        department_name=teacher.department_name,
        has_lesson_this_period=commitments.has_any_lesson(teacher.id, duty.period_number),
        has_supervision_this_period=commitments.holds_other_duty(teacher.id, duty.period_number, duty.duty_id),
        supervisions_this_week=commitments.supervisions_per_week.get(teacher.id, 0),
    )
    reasons = candidate.match_reasons

    if not candidate.has_lesson_this_period and not candidate.has_supervision_this_period:
        candidate.score += FREE_PERIOD_POINTS
        reasons.append("Free this period")
    else:
        if candidate.has_lesson_this_period:
            reasons.append("Has lesson")
        if candidate.has_supervision_this_period:
            reasons.append("Already supervising")

    workload = candidate.supervisions_this_week
    if workload == 0:
        candidate.score += NO_SUPERVISIONS_POINTS
        reasons.append("No other supervisions")
    elif workload <= LOW_SUPERVISION_WORKLOAD_LIMIT:
        candidate.score += LOW_SUPERVISION_WORKLOAD_POINTS
        reasons.append(f"Low workload ({workload})")

    if (
        absent is not None
        and teacher.department_id is not None
        and teacher.department_id == absent.department_id
    ):
        candidate.is_same_department = True
        candidate.score += SAME_DEPARTMENT_POINTS
        reasons.append("Same department")

    return candidate


def sort_supervision_candidates(candidates: Iterable[SupervisionCandidate]) -> list[SupervisionCandidate]:
    return sorted(
        candidates,
        key=lambda item: (-item.score, item.supervisions_this_week, item.name.casefold(), item.teacher_id),
    )


def rank_supervision_substitutes(
    db: Session,
    *,
    absent_teacher_id: str,
    duty_id: str,
    on_date: date | None = None,
) -> list[SupervisionCandidate]:
    duty = db.get(BreakSupervisionDuty, duty_id)
    if duty is None:
        raise NotFoundError("Break supervision duty", duty_id)

    slot = duty_slot(duty)
    teachers = load_teacher_snapshots(db)
    absent = teachers.get(absent_teacher_id)
    if absent is None:
        absent_row = db.get(Teacher, absent_teacher_id)
        absent = teacher_snapshot(absent_row) if absent_row is not None else None

    commitments = load_commitments(
        db,
        timetable_id=slot.timetable_id,
        day_of_week=slot.day_of_week,
        on_date=on_date or date.today(),
    )
    return sort_supervision_candidates(
        score_supervision_candidate(teacher, slot, commitments, absent)
        for teacher in teachers.values()
        if teacher.id != absent_teacher_id and not commitments.is_absent(teacher.id, slot.period_number)
    )
