"""Multi-factor ranking of substitute teachers for one lesson occurrence.

``score_lesson_candidate`` and ``sort_lesson_candidates`` are pure functions
over snapshots; ``rank_substitutes`` loads the snapshots and wires them up.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable

from sqlalchemy.orm import Session

from coverdesk.core.exceptions import NotFoundError
from coverdesk.models.teacher import Teacher
from coverdesk.models.timetable import ScheduledLesson
from coverdesk.services.commitments import (
    CommitmentSnapshot,
    LessonSlot,
    TeacherSnapshot,
    lesson_slot,
    load_commitments,
    load_teacher_snapshots,
    teacher_snapshot,
)

CO_TEACHER_POINTS = 250
QUALIFIED_POINTS = 100
INFORMAL_QUALIFICATION_POINTS = 40
WORKLOAD_BASE_POINTS = 20
WORKLOAD_STEP_POINTS = 4
LOW_WORKLOAD_THRESHOLD_POINTS = 10
SAME_DEPARTMENT_POINTS = 25
RESERVE_POINTS = 20
AVAILABILITY_STEP_POINTS = 5
SUBJECT_HISTORY_STEP_POINTS = 5
SUBJECT_HISTORY_MAX_POINTS = 10

DEFAULT_SORT_KEY = "score"


@dataclass
class LessonCandidate:
    teacher_id: str
    name: str
    email: str | None
    department_name: str | None
    score: int = 0
    is_co_teacher: bool = False
    is_qualified: bool = False
    substitutions_this_week: int = 0
    is_same_department: bool = False
    is_on_substitution_reserve: bool = False
    availability_importance: int | None = None
    availability_reason: str | None = None
    previous_subject_substitutions: int = 0
    match_reasons: list[str] = field(default_factory=list)


def is_busy(teacher: TeacherSnapshot, slot: LessonSlot, commitments: CommitmentSnapshot) -> bool:
    if commitments.is_absent(teacher.id, slot.period_number):
        return True
    if teacher.id in slot.teacher_ids:
        return False
    return commitments.is_teaching(teacher.id, slot.period_number) or commitments.is_covering(
        teacher.id, slot.period_number
    )


def _same_department(teacher: TeacherSnapshot, absent: TeacherSnapshot | None) -> bool:
    if absent is None or teacher.department_id is None or absent.department_id is None:
        return False
    return teacher.department_id == absent.department_id


def score_lesson_candidate(
    teacher: TeacherSnapshot,
    slot: LessonSlot,
    commitments: CommitmentSnapshot,
    absent: TeacherSnapshot | None = None,
) -> LessonCandidate:
    candidate = LessonCandidate(
        teacher_id=teacher.id,
        name=teacher.name,
        email=teacher.email,
        department_name=teacher.department_name,
    )
    reasons = candidate.match_reasons

    if teacher.id in slot.teacher_ids:
        candidate.is_co_teacher = True
        candidate.score += CO_TEACHER_POINTS
        reasons.append("Co-teacher on this lesson")

    candidate.is_qualified = bool(teacher.subject_ids & slot.subject_ids)
    if candidate.is_qualified:
        candidate.score += QUALIFIED_POINTS
        reasons.append(f"Qualified to teach {slot.subject_label}")
    elif teacher.qualification_notes:
        candidate.score += INFORMAL_QUALIFICATION_POINTS
        reasons.append(f"Informal qualification: {teacher.qualification_notes}")

    workload = commitments.substitutions_this_week.get(teacher.id, 0)
    candidate.substitutions_this_week = workload
    workload_points = max(0, WORKLOAD_BASE_POINTS - WORKLOAD_STEP_POINTS * workload)
    if workload_points:
        candidate.score += workload_points
        label = "Low workload" if workload_points > LOW_WORKLOAD_THRESHOLD_POINTS else "Moderate workload"
        reasons.append(f"{label} ({workload} substitutions this week)")

    if _same_department(teacher, absent):
        candidate.is_same_department = True
        candidate.score += SAME_DEPARTMENT_POINTS
        reasons.append(f"Same department as {absent.name}")

    if teacher.available_for_substitution:
        candidate.is_on_substitution_reserve = True
        candidate.score += RESERVE_POINTS
        reasons.append("On substitution reserve")

    availability = commitments.availability_for(teacher.id, slot.period_id)
    if availability is not None:
        importance = availability.importance
        candidate.availability_importance = importance
        candidate.availability_reason = availability.reason
        if importance:
            candidate.score += AVAILABILITY_STEP_POINTS * importance
            if importance > 0:
                text = f"Prefers this period (+{importance})"
            else:
                text = f"Prefers to avoid this period ({importance})"
            if availability.reason:
                text = f"{text}: {availability.reason}"
            reasons.append(text)

    history = commitments.previous_substitutions_in(teacher.id, slot.subject_ids)
    candidate.previous_subject_substitutions = history
    if history:
        candidate.score += min(SUBJECT_HISTORY_MAX_POINTS, SUBJECT_HISTORY_STEP_POINTS * history)
        reasons.append(f"Previously substituted {history}x in this subject")

    return candidate


def _name_key(candidate: LessonCandidate) -> tuple[str, str]:
    return candidate.name.casefold(), candidate.teacher_id


_SORT_ORDERS = {
    "score": lambda item: (-item.score, item.substitutions_this_week, *_name_key(item)),
    "workload": lambda item: (item.substitutions_this_week, -item.score, *_name_key(item)),
    "qualified": lambda item: (not item.is_qualified, -item.score, *_name_key(item)),
    "reserve": lambda item: (not item.is_on_substitution_reserve, -item.score, *_name_key(item)),
    "name": _name_key,
}


def sort_lesson_candidates(candidates: Iterable[LessonCandidate], sort_key: str | None = None) -> list[LessonCandidate]:
    key = (sort_key or DEFAULT_SORT_KEY).strip().lower()
    order = _SORT_ORDERS.get(key, _SORT_ORDERS[DEFAULT_SORT_KEY])
    return sorted(candidates, key=order)


def rank_lesson_candidates(
    teachers: Iterable[TeacherSnapshot],
    slot: LessonSlot,
    commitments: CommitmentSnapshot,
    *,
    absent: TeacherSnapshot | None,
    absent_teacher_id: str,
    sort_key: str | None = None,
) -> list[LessonCandidate]:
    candidates = [
        score_lesson_candidate(teacher, slot, commitments, absent)
        for teacher in teachers
        if teacher.id != absent_teacher_id and not is_busy(teacher, slot, commitments)
    ]
    return sort_lesson_candidates(candidates, sort_key)


def rank_substitutes(
    db: Session,
    *,
    absent_teacher_id: str,
    scheduled_lesson_id: str,
    sort_key: str | None = DEFAULT_SORT_KEY,
    on_date: date | None = None,
) -> list[LessonCandidate]:
    scheduled = db.get(ScheduledLesson, scheduled_lesson_id)
    if scheduled is None:
        raise NotFoundError("Scheduled lesson", scheduled_lesson_id)

    slot = lesson_slot(scheduled)
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
    return rank_lesson_candidates(
        teachers.values(),
        slot,
        commitments,
        absent=absent,
        absent_teacher_id=absent_teacher_id,
        sort_key=sort_key,
    )
