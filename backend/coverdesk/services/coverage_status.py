from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from coverdesk.models.absence import Absence, AbsenceStatus
from coverdesk.models.timetable import Timetable
from coverdesk.services.affected_items import resolve_affected

logger = logging.getLogger(__name__)


def derive_coverage_status(affected_count: int, covered_count: int) -> AbsenceStatus | None:
    """Coverage status for the given counts, or None when there is nothing to cover.

    Zero affected lessons usually means no published timetable (or a free day);
    that is not evidence of coverage, so the caller keeps the current status.
    """
    if affected_count <= 0:
        return None
    if covered_count >= affected_count:
        return AbsenceStatus.covered
    if covered_count <= 0:
        return AbsenceStatus.not_covered
    return AbsenceStatus.partially_covered


def refresh_absence_status(db: Session, absence: Absence, *, timetable: Timetable | None = None) -> AbsenceStatus:
    """Recompute the coverage status from affected lessons; the caller commits."""
    affected = resolve_affected(db, absence, timetable=timetable)
    covered = sum(1 for item in affected.lessons if item.is_assigned)
    status = derive_coverage_status(len(affected.lessons), covered)
    if status is None:
        logger.info("Absence %s has no affected lessons; status stays %s", absence.id, absence.status.value)
        return absence.status
    if absence.status != status:
        logger.info(
            "Absence %s coverage %s -> %s (%s/%s lessons)",
            absence.id,
            absence.status.value,
            status.value,
            covered,
            len(affected.lessons),
        )
        absence.status = status
    return status
