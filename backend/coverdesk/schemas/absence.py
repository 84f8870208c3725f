from datetime import date, datetime, time
from decimal import Decimal

from pydantic import BaseModel, Field

from coverdesk.models.absence import AbsenceStatus, AbsenceType


class AbsenceCreate(BaseModel):
    teacher_id: str = Field(min_length=1, max_length=36)
    date: date
    start_time: time | None = None
    end_time: time | None = None
    absence_type: AbsenceType = AbsenceType.sick
    notes: str | None = Field(default=None, max_length=2000)


class AbsenceOut(BaseModel):
    id: str
    teacher_id: str
    date: date
    start_time: time | None = None
    end_time: time | None = None
    absence_type: AbsenceType
    status: AbsenceStatus
    total_hours: Decimal
    notes: str | None = None
    reported_by_id: str | None = None
    reported_at: datetime | None = None

    model_config = {"from_attributes": True}


class AffectedLessonOut(BaseModel):
    scheduled_lesson_id: str
    period_id: str
    period_number: int
    period_name: str
    start_time: time
    end_time: time
    subject_names: list[str]
    class_names: list[str]
    room_label: str
    substitution_id: str | None = None
    is_assigned: bool

    model_config = {"from_attributes": True}


class AffectedDutyOut(BaseModel):
    duty_id: str
    period_number: int
    location: str
    start_time: time | None = None
    end_time: time | None = None
    substitution_id: str | None = None
    is_assigned: bool

    model_config = {"from_attributes": True}


class AffectedItemsOut(BaseModel):
    absence_id: str
    timetable_id: str | None = None
    lessons: list[AffectedLessonOut]
    duties: list[AffectedDutyOut]
    warnings: list[str] = []
