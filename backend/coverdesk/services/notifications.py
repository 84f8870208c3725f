from __future__ import annotations

from datetime import date
import logging

from coverdesk.models.supervision import BreakSupervisionDuty
from coverdesk.models.teacher import Teacher
from coverdesk.models.timetable import Period, ScheduledLesson
from coverdesk.services.email import EmailDeliveryError, send_email

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def _format_date(value: date) -> str:
    return f"{WEEKDAY_NAMES[value.weekday()]}, {value:%d.%m.%Y}"


def _deliver(recipient: Teacher, *, subject: str, lines: list[str]) -> bool:
    if not recipient.email:
        return False
    try:
        send_email(to_email=recipient.email, subject=subject, text_content="\n".join(lines))
    except EmailDeliveryError:
        logger.warning("Substitution email delivery failed for teacher %s", recipient.id, exc_info=True)
        return False
    return True


def notify_lesson_substitute(
    substitute: Teacher,
    *,
    on_date: date,
    scheduled: ScheduledLesson,
    absent_teacher: Teacher | None = None,
    notes: str | None = None,
) -> bool:
    """Email the substitute about one lesson; returns whether the message went out."""
    period = scheduled.period
    subjects = ", ".join(sorted(item.name for item in scheduled.lesson.subjects)) or "Lesson"
    classes = ", ".join(sorted(item.name for item in scheduled.lesson.classes)) or "-"
    lines = [
        f"Hello {substitute.name},",
        "",
        "you have been assigned a substitution:",
        "",
        f"Date: {_format_date(on_date)}",
        f"Period: {period.name} ({period.time_range})",
        f"Subject: {subjects}",
        f"Class: {classes}",
        f"Room: {scheduled.room_label}",
    ]
    if absent_teacher is not None:
        lines.append(f"Covering for: {absent_teacher.name}")
    if notes:
        lines.extend(["", f"Notes: {notes}"])
    return _deliver(
        substitute,
        subject=f"Substitution: {subjects}, {_format_date(on_date)}, {period.name}",
        lines=lines,
    )


def notify_supervision_substitute(
    substitute: Teacher,
    *,
    on_date: date,
    duty: BreakSupervisionDuty,
    period: Period | None = None,
    absent_teacher: Teacher | None = None,
    notes: str | None = None,
) -> bool:
    period_label = f"{period.name} ({period.time_range})" if period is not None else f"Period {duty.period_number}"
    lines = [
        f"Hello {substitute.name},",
        "",
        "you have been assigned a break supervision:",
        "",
        f"Date: {_format_date(on_date)}",
        f"Period: {period_label}",
        f"Location: {duty.location}",
    ]
    if absent_teacher is not None:
        lines.append(f"Covering for: {absent_teacher.name}")
    if notes:
        lines.extend(["", f"Notes: {notes}"])
    return _deliver(
        substitute,
        subject=f"Break supervision: {duty.location}, {_format_date(on_date)}",
        lines=lines,
    )
