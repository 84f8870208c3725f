"""create coverage schema

Revision ID: 20261019_0001
Revises: None
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


user_role_enum = sa.Enum("admin", "scheduler", "teacher", name="user_role")
timetable_status_enum = sa.Enum("draft", "published", "archived", name="timetable_status")
absence_type_enum = sa.Enum(
    "sick",
    "personal",
    "professional",
    "meeting",
    "emergency",
    "vacation",
    "administrative_duty",
    "other",
    name="absence_type",
)
absence_status_enum = sa.Enum(
    "reported",
    "confirmed",
    "being_covered",
    "covered",
    "partially_covered",
    "not_covered",
    name="absence_status",
)
substitution_type_enum = sa.Enum(
    "teacher_substitute",
    "class_merger",
    "self_study",
    "cancelled",
    "room_change",
    "rescheduled",
    name="substitution_type",
)
supervision_substitution_type_enum = sa.Enum(
    "teacher_substitute",
    "cancelled",
    "combined_area",
    name="supervision_substitution_type",
)


def _id_column() -> sa.Column:
    return sa.Column("id", sa.String(length=36), primary_key=True, nullable=False)


def _fk(name: str, target: str, *, ondelete: str | None = "CASCADE", nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.String(length=36), sa.ForeignKey(target, ondelete=ondelete), nullable=nullable)


def upgrade() -> None:
    op.create_table(
        "users",
        _id_column(),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("role", user_role_enum, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "departments",
        _id_column(),
        sa.Column("name", sa.String(length=200), nullable=False, unique=True),
    )
    op.create_table(
        "teachers",
        _id_column(),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        _fk("department_id", "departments.id", ondelete="SET NULL", nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("available_for_substitution", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("substitution_hourly_rate", sa.Numeric(10, 2), nullable=True),
        sa.Column("substitution_qualification_notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_teachers_email", "teachers", ["email"])
    op.create_index("ix_teachers_department_id", "teachers", ["department_id"])

    op.create_table(
        "timetables",
        _id_column(),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("status", timetable_status_enum, nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_timetables_status", "timetables", ["status"])

    op.create_table(
        "periods",
        _id_column(),
        sa.Column("period_number", sa.Integer(), nullable=False, unique=True),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("is_break", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    )
    op.create_table(
        "subjects",
        _id_column(),
        sa.Column("code", sa.String(length=20), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
    )
    op.create_index("ix_subjects_code", "subjects", ["code"])
    op.create_table(
        "school_classes",
        _id_column(),
        sa.Column("name", sa.String(length=50), nullable=False),
    )
    op.create_table(
        "rooms",
        _id_column(),
        sa.Column("room_number", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=True),
    )
    op.create_index("ix_rooms_room_number", "rooms", ["room_number"])

    op.create_table(
        "teacher_subjects",
        _id_column(),
        _fk("teacher_id", "teachers.id"),
        _fk("subject_id", "subjects.id"),
        sa.UniqueConstraint("teacher_id", "subject_id", name="uq_teacher_subject"),
    )
    op.create_index("ix_teacher_subjects_teacher_id", "teacher_subjects", ["teacher_id"])
    op.create_index("ix_teacher_subjects_subject_id", "teacher_subjects", ["subject_id"])
    op.create_table(
        "teacher_availabilities",
        _id_column(),
        _fk("teacher_id", "teachers.id"),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        _fk("period_id", "periods.id"),
        sa.Column("importance", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("reason", sa.String(length=500), nullable=True),
        sa.UniqueConstraint("teacher_id", "day_of_week", "period_id", name="uq_teacher_availability_slot"),
        sa.CheckConstraint("importance BETWEEN -3 AND 3", name="ck_teacher_availability_importance"),
    )
    op.create_index("ix_teacher_availabilities_teacher_id", "teacher_availabilities", ["teacher_id"])

    op.create_table("lessons", _id_column())
    op.create_table(
        "lesson_teachers",
        sa.Column("lesson_id", sa.String(length=36), sa.ForeignKey("lessons.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("teacher_id", sa.String(length=36), sa.ForeignKey("teachers.id", ondelete="CASCADE"), primary_key=True),
    )
    op.create_table(
        "lesson_subjects",
        sa.Column("lesson_id", sa.String(length=36), sa.ForeignKey("lessons.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("subject_id", sa.String(length=36), sa.ForeignKey("subjects.id", ondelete="CASCADE"), primary_key=True),
    )
    op.create_table(
        "lesson_classes",
        sa.Column("lesson_id", sa.String(length=36), sa.ForeignKey("lessons.id", ondelete="CASCADE"), primary_key=True),
        sa.Column(
            "class_id", sa.String(length=36), sa.ForeignKey("school_classes.id", ondelete="CASCADE"), primary_key=True
        ),
    )
    op.create_table(
        "scheduled_lessons",
        _id_column(),
        _fk("lesson_id", "lessons.id"),
        _fk("timetable_id", "timetables.id"),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        _fk("period_id", "periods.id", ondelete=None),
    )
    op.create_index("ix_scheduled_lessons_lesson_id", "scheduled_lessons", ["lesson_id"])
    op.create_index("ix_scheduled_lessons_timetable_id", "scheduled_lessons", ["timetable_id"])
    op.create_index("ix_scheduled_lessons_day_of_week", "scheduled_lessons", ["day_of_week"])
    op.create_table(
        "scheduled_lesson_rooms",
        sa.Column(
            "scheduled_lesson_id",
            sa.String(length=36),
            sa.ForeignKey("scheduled_lessons.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("room_id", sa.String(length=36), sa.ForeignKey("rooms.id", ondelete="CASCADE"), primary_key=True),
    )

    op.create_table(
        "break_supervision_duties",
        _id_column(),
        _fk("timetable_id", "timetables.id"),
        _fk("room_id", "rooms.id", ondelete=None),
        _fk("teacher_id", "teachers.id", ondelete="SET NULL", nullable=True),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("period_number", sa.Integer(), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("notes", sa.Text(), nullable=True),
    )
    op.create_index("ix_break_supervision_duties_timetable_id", "break_supervision_duties", ["timetable_id"])
    op.create_index("ix_break_supervision_duties_teacher_id", "break_supervision_duties", ["teacher_id"])
    op.create_index("ix_break_supervision_duties_day_of_week", "break_supervision_duties", ["day_of_week"])

    op.create_table(
        "absences",
        _id_column(),
        _fk("teacher_id", "teachers.id"),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=True),
        sa.Column("end_time", sa.Time(), nullable=True),
        sa.Column("absence_type", absence_type_enum, nullable=False),
        sa.Column("status", absence_status_enum, nullable=False),
        sa.Column("total_hours", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("reported_by_id", sa.String(length=36), nullable=True),
        sa.Column("reported_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_absences_teacher_id", "absences", ["teacher_id"])
    op.create_index("ix_absences_date", "absences", ["date"])

    op.create_table(
        "substitutions",
        _id_column(),
        _fk("absence_id", "absences.id"),
        _fk("scheduled_lesson_id", "scheduled_lessons.id"),
        _fk("substitute_teacher_id", "teachers.id", ondelete="SET NULL", nullable=True),
        sa.Column("substitution_type", substitution_type_enum, nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("assigned_by_id", sa.String(length=36), nullable=True),
        sa.Column("email_sent", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("email_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("hours_worked", sa.Numeric(6, 2), nullable=False, server_default="0"),
        sa.Column("pay_rate", sa.Numeric(10, 2), nullable=True),
        sa.Column("total_pay", sa.Numeric(10, 2), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("absence_id", "scheduled_lesson_id", name="uq_substitution_absence_lesson"),
    )
    op.create_index("ix_substitutions_absence_id", "substitutions", ["absence_id"])
    op.create_index("ix_substitutions_scheduled_lesson_id", "substitutions", ["scheduled_lesson_id"])
    op.create_index("ix_substitutions_substitute_teacher_id", "substitutions", ["substitute_teacher_id"])

    op.create_table(
        "break_supervision_substitutions",
        _id_column(),
        _fk("absence_id", "absences.id"),
        _fk("break_supervision_duty_id", "break_supervision_duties.id"),
        _fk("substitute_teacher_id", "teachers.id", ondelete="SET NULL", nullable=True),
        sa.Column("substitution_type", supervision_substitution_type_enum, nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("assigned_by_id", sa.String(length=36), nullable=True),
        sa.Column("email_sent", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("email_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint(
            "absence_id",
            "break_supervision_duty_id",
            name="uq_supervision_substitution_absence_duty",
        ),
    )
    op.create_index(
        "ix_break_supervision_substitutions_absence_id", "break_supervision_substitutions", ["absence_id"]
    )
    op.create_index("ix_break_supervision_substitutions_date", "break_supervision_substitutions", ["date"])

    op.create_table(
        "activity_logs",
        _id_column(),
        sa.Column("user_id", sa.String(length=36), nullable=True),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("entity_type", sa.String(length=100), nullable=True),
        sa.Column("entity_id", sa.String(length=100), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_activity_logs_action", "activity_logs", ["action"])


def downgrade() -> None:
    for table_name in (
        "activity_logs",
        "break_supervision_substitutions",
        "substitutions",
        "absences",
        "break_supervision_duties",
        "scheduled_lesson_rooms",
        "scheduled_lessons",
        "lesson_classes",
        "lesson_subjects",
        "lesson_teachers",
        "lessons",
        "teacher_availabilities",
        "teacher_subjects",
        "rooms",
        "school_classes",
        "subjects",
        "periods",
        "timetables",
        "teachers",
        "departments",
        "users",
    ):
        op.drop_table(table_name)

    bind = op.get_bind()
    for enum_type in (
        supervision_substitution_type_enum,
        substitution_type_enum,
        absence_status_enum,
        absence_type_enum,
        timetable_status_enum,
        user_role_enum,
    ):
        enum_type.drop(bind, checkfirst=True)
