from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from coverdesk.models.absence import AbsenceStatus
from coverdesk.models.substitution import SubstitutionType, SupervisionSubstitutionType


class SubstitutionCreate(BaseModel):
    scheduled_lesson_id: str = Field(min_length=1, max_length=36)
    substitute_teacher_id: str | None = Field(default=None, max_length=36)
    substitution_type: SubstitutionType = SubstitutionType.teacher_substitute
    notes: str | None = Field(default=None, max_length=2000)
    pay_rate: Decimal | None = Field(default=None, ge=0)


class SupervisionSubstitutionCreate(BaseModel):
    duty_id: str = Field(min_length=1, max_length=36)
    substitute_teacher_id: str | None = Field(default=None, max_length=36)
    substitution_type: SupervisionSubstitutionType = SupervisionSubstitutionType.teacher_substitute
    notes: str | None = Field(default=None, max_length=2000)


class SubstitutionOut(BaseModel):
    id: str
    absence_id: str
    scheduled_lesson_id: str
    substitute_teacher_id: str | None = None
    substitution_type: SubstitutionType
    notes: str | None = None
    assigned_at: datetime
    assigned_by_id: str | None = None
    email_sent: bool
    email_sent_at: datetime | None = None
    hours_worked: Decimal
    pay_rate: Decimal | None = None
    total_pay: Decimal | None = None

    model_config = {"from_attributes": True}


class SupervisionSubstitutionOut(BaseModel):
    id: str
    absence_id: str
    break_supervision_duty_id: str
    substitute_teacher_id: str | None = None
    substitution_type: SupervisionSubstitutionType
    date: date
    notes: str | None = None
    assigned_at: datetime
    assigned_by_id: str | None = None
    email_sent: bool
    email_sent_at: datetime | None = None

    model_config = {"from_attributes": True}


class AutoAssignRequest(BaseModel):
    minimum_score: int | None = Field(default=None, ge=0)


class AutoAssignOut(BaseModel):
    absence_id: str
    assigned: int
    failed: int
    status: AbsenceStatus
    substitution_ids: list[str] = []
    warnings: list[str] = []


class RemovalOut(BaseModel):
    id: str
    absence_status: AbsenceStatus


class DailySubstitutionOut(BaseModel):
    substitution_id: str
    absence_id: str
    period_number: int
    period_name: str
    time_range: str
    subject_names: list[str]
    class_names: list[str]
    room_label: str
    absent_teacher_name: str | None = None
    substitute_teacher_id: str | None = None
    substitute_teacher_name: str | None = None
    substitution_type: SubstitutionType
    notes: str | None = None

    model_config = {"from_attributes": True}
