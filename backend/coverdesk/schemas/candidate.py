from pydantic import BaseModel


class LessonCandidateOut(BaseModel):
    teacher_id: str
    name: str
    email: str | None = None
    department_name: str | None = None
    score: int
    is_co_teacher: bool
    is_qualified: bool
    substitutions_this_week: int
    is_same_department: bool
    is_on_substitution_reserve: bool
    availability_importance: int | None = None
    availability_reason: str | None = None
    previous_subject_substitutions: int
    match_reasons: list[str]

    model_config = {"from_attributes": True}


class SupervisionCandidateOut(BaseModel):
    teacher_id: str
    name: str
    email: str | None = None
    department_name: str | None = None
    score: int
    has_lesson_this_period: bool
    has_supervision_this_period: bool
    supervisions_this_week: int
    is_same_department: bool
    match_reasons: list[str]

    model_config = {"from_attributes": True}
