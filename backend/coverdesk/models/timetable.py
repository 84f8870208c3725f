import uuid
from datetime import datetime, time
from enum import Enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    Time,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from coverdesk.db.base import Base

# Lessons with this subject code are on-call reserve hours, not teaching commitments.
SUBSTITUTION_RESERVE_SUBJECT_CODE = "sub"


class TimetableStatus(str, Enum):
    draft = "draft"
    published = "published"
    archived = "archived"


class Timetable(Base):
    __tablename__ = "timetables"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[TimetableStatus] = mapped_column(
        SAEnum(TimetableStatus, name="timetable_status"),
        nullable=False,
        default=TimetableStatus.draft,
        index=True,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class Period(Base):
    __tablename__ = "periods"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    period_number: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    is_break: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    @property
    def duration_minutes(self) -> int:
        return (self.end_time.hour * 60 + self.end_time.minute) - (
            self.start_time.hour * 60 + self.start_time.minute
        )

    @property
    def time_range(self) -> str:
        return f"{self.start_time:%H:%M} - {self.end_time:%H:%M}"


class Subject(Base):
    __tablename__ = "subjects"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    code: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    @property
    def is_substitution_reserve(self) -> bool:
        return (self.code or "").strip().lower() == SUBSTITUTION_RESERVE_SUBJECT_CODE


class SchoolClass(Base):
    __tablename__ = "school_classes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(50), nullable=False)


class Room(Base):
    __tablename__ = "rooms"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    room_number: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    name: Mapped[str | None] = mapped_column(String(200), nullable=True)


lesson_teachers = Table(
    "lesson_teachers",
    Base.metadata,
    Column("lesson_id", String(36), ForeignKey("lessons.id", ondelete="CASCADE"), primary_key=True),
    Column("teacher_id", String(36), ForeignKey("teachers.id", ondelete="CASCADE"), primary_key=True),
)

lesson_subjects = Table(
    "lesson_subjects",
    Base.metadata,
    Column("lesson_id", String(36), ForeignKey("lessons.id", ondelete="CASCADE"), primary_key=True),
    Column("subject_id", String(36), ForeignKey("subjects.id", ondelete="CASCADE"), primary_key=True),
)

lesson_classes = Table(
    "lesson_classes",
    Base.metadata,
    Column("lesson_id", String(36), ForeignKey("lessons.id", ondelete="CASCADE"), primary_key=True),
    Column("class_id", String(36), ForeignKey("school_classes.id", ondelete="CASCADE"), primary_key=True),
)

scheduled_lesson_rooms = Table(
    "scheduled_lesson_rooms",
    Base.metadata,
    Column(
        "scheduled_lesson_id",
        String(36),
        ForeignKey("scheduled_lessons.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("room_id", String(36), ForeignKey("rooms.id", ondelete="CASCADE"), primary_key=True),
)


class Lesson(Base):
    __tablename__ = "lessons"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    teachers: Mapped[list["Teacher"]] = relationship(secondary=lesson_teachers, lazy="selectin")  # noqa: F821
    subjects: Mapped[list[Subject]] = relationship(secondary=lesson_subjects, lazy="selectin")
    classes: Mapped[list[SchoolClass]] = relationship(secondary=lesson_classes, lazy="selectin")

    @property
    def teacher_ids(self) -> set[str]:
        return {item.id for item in self.teachers}

    @property
    def subject_ids(self) -> set[str]:
        return {item.id for item in self.subjects}

    @property
    def is_substitution_reserve(self) -> bool:
        return any(item.is_substitution_reserve for item in self.subjects)


class ScheduledLesson(Base):
    """One weekly occurrence of a lesson in a timetable."""

    __tablename__ = "scheduled_lessons"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    lesson_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False, index=True
    )
    timetable_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("timetables.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # 0 = Monday ... 6 = Sunday, matching date.weekday().
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    period_id: Mapped[str] = mapped_column(String(36), ForeignKey("periods.id"), nullable=False)

    lesson: Mapped[Lesson] = relationship(lazy="joined")
    period: Mapped[Period] = relationship(lazy="joined")
    rooms: Mapped[list[Room]] = relationship(secondary=scheduled_lesson_rooms, lazy="selectin")

    @property
    def room_label(self) -> str:
        if not self.rooms:
            return "TBA"
        return ", ".join(sorted(room.room_number for room in self.rooms))
