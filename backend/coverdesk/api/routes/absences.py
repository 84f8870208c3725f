from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from coverdesk.api.deps import get_current_user, get_db, require_roles
from coverdesk.models.user import User, UserRole
from coverdesk.schemas.absence import (
    AbsenceCreate,
    AbsenceOut,
    AffectedDutyOut,
    AffectedItemsOut,
    AffectedLessonOut,
)
from coverdesk.schemas.candidate import LessonCandidateOut, SupervisionCandidateOut
from coverdesk.schemas.substitution import (
    AutoAssignOut,
    AutoAssignRequest,
    SubstitutionCreate,
    SubstitutionOut,
    SupervisionSubstitutionCreate,
    SupervisionSubstitutionOut,
)
from coverdesk.services.absences import confirm_absence, delete_absence, get_absence, report_absence
from coverdesk.services.affected_items import resolve_affected
from coverdesk.services.assignment import assign_substitute, assign_supervision_substitute, auto_assign_all
from coverdesk.services.candidate_ranking import DEFAULT_SORT_KEY, rank_substitutes
from coverdesk.services.supervision_ranking import rank_supervision_substitutes

router = APIRouter()


@router.post("/absences", response_model=AbsenceOut, status_code=status.HTTP_201_CREATED)
def create_absence(
    payload: AbsenceCreate,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.scheduler)),
    db: Session = Depends(get_db),
) -> AbsenceOut:
    absence = report_absence(
        db,
        teacher_id=payload.teacher_id,
        absence_date=payload.date,
        absence_type=payload.absence_type,
        start_time=payload.start_time,
        end_time=payload.end_time,
        notes=payload.notes,
        reported_by=current_user,
    )
    return AbsenceOut.model_validate(absence)


@router.get("/absences/{absence_id}", response_model=AbsenceOut)
def read_absence(
    absence_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AbsenceOut:
    return AbsenceOut.model_validate(get_absence(db, absence_id))


@router.put("/absences/{absence_id}/confirm", response_model=AbsenceOut)
def confirm(
    absence_id: str,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.scheduler)),
    db: Session = Depends(get_db),
) -> AbsenceOut:
    return AbsenceOut.model_validate(confirm_absence(db, absence_id, actor=current_user))


@router.delete("/absences/{absence_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_absence(
    absence_id: str,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.scheduler)),
    db: Session = Depends(get_db),
) -> None:
    delete_absence(db, absence_id, actor=current_user)


@router.get("/absences/{absence_id}/affected", response_model=AffectedItemsOut)
def affected_items(
    absence_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AffectedItemsOut:
    absence = get_absence(db, absence_id)
    affected = resolve_affected(db, absence)
    return AffectedItemsOut(
        absence_id=absence.id,
        timetable_id=affected.timetable_id,
        lessons=[AffectedLessonOut.model_validate(item) for item in affected.lessons],
        duties=[AffectedDutyOut.model_validate(item) for item in affected.duties],
        warnings=affected.warnings,
    )


@router.get(
    "/absences/{absence_id}/lessons/{scheduled_lesson_id}/candidates",
    response_model=list[LessonCandidateOut],
)
def lesson_candidates(
    absence_id: str,
    scheduled_lesson_id: str,
    sort: str = Query(default=DEFAULT_SORT_KEY, max_length=20),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[LessonCandidateOut]:
    absence = get_absence(db, absence_id)
    candidates = rank_substitutes(
        db,
        absent_teacher_id=absence.teacher_id,
        scheduled_lesson_id=scheduled_lesson_id,
        sort_key=sort,
        on_date=absence.date,
    )
    return [LessonCandidateOut.model_validate(item) for item in candidates]


@router.get(
    "/absences/{absence_id}/duties/{duty_id}/candidates",
    response_model=list[SupervisionCandidateOut],
)
def duty_candidates(
    absence_id: str,
    duty_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[SupervisionCandidateOut]:
    absence = get_absence(db, absence_id)
    candidates = rank_supervision_substitutes(
        db,
        absent_teacher_id=absence.teacher_id,
        duty_id=duty_id,
        on_date=absence.date,
    )
    return [SupervisionCandidateOut.model_validate(item) for item in candidates]


@router.post(
    "/absences/{absence_id}/substitutions",
    response_model=SubstitutionOut,
    status_code=status.HTTP_201_CREATED,
)
def create_substitution(
    absence_id: str,
    payload: SubstitutionCreate,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.scheduler)),
    db: Session = Depends(get_db),
) -> SubstitutionOut:
    record = assign_substitute(
        db,
        absence_id=absence_id,
        scheduled_lesson_id=payload.scheduled_lesson_id,
        substitute_teacher_id=payload.substitute_teacher_id,
        coverage_type=payload.substitution_type,
        actor=current_user,
        notes=payload.notes,
        pay_rate=payload.pay_rate,
    )
    return SubstitutionOut.model_validate(record)


@router.post(
    "/absences/{absence_id}/supervision-substitutions",
    response_model=SupervisionSubstitutionOut,
    status_code=status.HTTP_201_CREATED,
)
def create_supervision_substitution(
    absence_id: str,
    payload: SupervisionSubstitutionCreate,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.scheduler)),
    db: Session = Depends(get_db),
) -> SupervisionSubstitutionOut:
    record = assign_supervision_substitute(
        db,
        absence_id=absence_id,
        duty_id=payload.duty_id,
        substitute_teacher_id=payload.substitute_teacher_id,
        coverage_type=payload.substitution_type,
        actor=current_user,
        notes=payload.notes,
    )
    return SupervisionSubstitutionOut.model_validate(record)


@router.post("/absences/{absence_id}/auto-assign", response_model=AutoAssignOut)
def auto_assign(
    absence_id: str,
    payload: AutoAssignRequest | None = None,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.scheduler)),
    db: Session = Depends(get_db),
) -> AutoAssignOut:
    result = auto_assign_all(
        db,
        absence_id=absence_id,
        actor=current_user,
        minimum_score=payload.minimum_score if payload is not None else None,
    )
    return AutoAssignOut(
        absence_id=absence_id,
        assigned=result.assigned,
        failed=result.failed,
        status=result.status,
        substitution_ids=result.substitution_ids,
        warnings=result.warnings,
    )
