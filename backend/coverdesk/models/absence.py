import uuid
import datetime as dt
from datetime import datetime, time
from decimal import Decimal
from enum import Enum

from sqlalchemy import Date, DateTime, Enum as SAEnum, ForeignKey, Numeric, String, Text, Time
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from coverdesk.db.base import Base


class AbsenceType(str, Enum):
    sick = "sick"
    personal = "personal"
    professional = "professional"
    meeting = "meeting"
    emergency = "emergency"
    vacation = "vacation"
    administrative_duty = "administrative_duty"
    other = "other"


class AbsenceStatus(str, Enum):
    reported = "reported"
    confirmed = "confirmed"
    being_covered = "being_covered"
    covered = "covered"
    partially_covered = "partially_covered"
    not_covered = "not_covered"


class Absence(Base):
    __tablename__ = "absences"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    teacher_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("teachers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    start_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    end_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    absence_type: Mapped[AbsenceType] = mapped_column(SAEnum(AbsenceType, name="absence_type"), nullable=False)
    status: Mapped[AbsenceStatus] = mapped_column(
        SAEnum(AbsenceStatus, name="absence_status"),
        nullable=False,
        default=AbsenceStatus.reported,
    )
    total_hours: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0"))
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    reported_by_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    reported_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    substitutions: Mapped[list["Substitution"]] = relationship(  # noqa: F821
        cascade="all, delete-orphan",
    )
    supervision_substitutions: Mapped[list["BreakSupervisionSubstitution"]] = relationship(  # noqa: F821
        cascade="all, delete-orphan",
    )

    @property
    def is_partial_day(self) -> bool:
        return self.start_time is not None and self.end_time is not None
