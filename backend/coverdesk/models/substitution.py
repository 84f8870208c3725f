import uuid
import datetime as dt
from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from coverdesk.db.base import Base


class SubstitutionType(str, Enum):
    teacher_substitute = "teacher_substitute"
    class_merger = "class_merger"
    self_study = "self_study"
    cancelled = "cancelled"
    room_change = "room_change"
    rescheduled = "rescheduled"


class SupervisionSubstitutionType(str, Enum):
    teacher_substitute = "teacher_substitute"
    cancelled = "cancelled"
    combined_area = "combined_area"


class Substitution(Base):
    __tablename__ = "substitutions"
    __table_args__ = (
        UniqueConstraint("absence_id", "scheduled_lesson_id", name="uq_substitution_absence_lesson"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    absence_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("absences.id", ondelete="CASCADE"), nullable=False, index=True
    )
    scheduled_lesson_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("scheduled_lessons.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # None means the lesson is covered without a teacher (self study, cancellation, ...).
    substitute_teacher_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("teachers.id", ondelete="SET NULL"), nullable=True, index=True
    )
    substitution_type: Mapped[SubstitutionType] = mapped_column(
        SAEnum(SubstitutionType, name="substitution_type"),
        nullable=False,
        default=SubstitutionType.teacher_substitute,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    assigned_by_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    email_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    email_sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    hours_worked: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=Decimal("0"))
    pay_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    total_pay: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class BreakSupervisionSubstitution(Base):
    __tablename__ = "break_supervision_substitutions"
    __table_args__ = (
        UniqueConstraint(
            "absence_id",
            "break_supervision_duty_id",
            name="uq_supervision_substitution_absence_duty",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    absence_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("absences.id", ondelete="CASCADE"), nullable=False, index=True
    )
    break_supervision_duty_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("break_supervision_duties.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    substitute_teacher_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("teachers.id", ondelete="SET NULL"), nullable=True, index=True
    )
    substitution_type: Mapped[SupervisionSubstitutionType] = mapped_column(
        SAEnum(SupervisionSubstitutionType, name="supervision_substitution_type"),
        nullable=False,
        default=SupervisionSubstitutionType.teacher_substitute,
    )
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    assigned_by_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    email_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    email_sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
