from __future__ import annotations

import logging

from sqlalchemy import inspect, text

from coverdesk.db.base import Base
from coverdesk.db.session import engine
import coverdesk.models  # noqa: F401

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "teachers": {"id", "department_id", "available_for_substitution", "substitution_hourly_rate"},
    "absences": {"id", "teacher_id", "date", "status", "total_hours"},
    "substitutions": {"id", "absence_id", "scheduled_lesson_id", "substitute_teacher_id", "email_sent"},
    "break_supervision_substitutions": {"id", "absence_id", "break_supervision_duty_id", "date"},
}

# Older databases predate the table-level constraints; the unique indexes give the same guarantee.
UNIQUE_INDEXES: dict[str, tuple[str, tuple[str, ...]]] = {
    "ux_substitutions_absence_lesson": ("substitutions", ("absence_id", "scheduled_lesson_id")),
    "ux_supervision_substitutions_absence_duty": (
        "break_supervision_substitutions",
        ("absence_id", "break_supervision_duty_id"),
    ),
}


def _ensure_teacher_substitution_columns() -> None:
    with engine.begin() as connection:
        inspector = inspect(connection)
        if "teachers" not in set(inspector.get_table_names()):
            return
        column_names = {item["name"] for item in inspector.get_columns("teachers")}
        if "substitution_hourly_rate" not in column_names:
            connection.execute(text("ALTER TABLE teachers ADD COLUMN substitution_hourly_rate NUMERIC(10, 2)"))
        if "substitution_qualification_notes" not in column_names:
            connection.execute(text("ALTER TABLE teachers ADD COLUMN substitution_qualification_notes TEXT"))


def _ensure_unique_substitution_indexes() -> None:
    with engine.begin() as connection:
        for index_name, (table_name, columns) in UNIQUE_INDEXES.items():
            connection.execute(
                text(f"CREATE UNIQUE INDEX IF NOT EXISTS {index_name} ON {table_name} ({', '.join(columns)})")
            )


def find_schema_gaps(connection) -> list[str]:
    """Required tables or ``table.column`` names missing from the connected database."""
    inspector = inspect(connection)
    table_names = set(inspector.get_table_names())
    gaps: list[str] = []
    for table_name, required in REQUIRED_COLUMNS.items():
        if table_name not in table_names:
            gaps.append(table_name)
            continue
        existing = {item["name"] for item in inspector.get_columns(table_name)}
        gaps.extend(f"{table_name}.{column_name}" for column_name in sorted(required - existing))
    return gaps


def _assert_required_columns() -> None:
    with engine.begin() as connection:
        gaps = find_schema_gaps(connection)
    if gaps:
        raise RuntimeError(f"Missing required schema: {', '.join(gaps)}")


def ensure_runtime_schema_compatibility() -> None:
    try:
        Base.metadata.create_all(bind=engine)
        _ensure_teacher_substitution_columns()
        _ensure_unique_substitution_indexes()
        _assert_required_columns()
    except Exception as exc:  # pragma: no cover - runtime environment dependent
        logger.exception("Runtime schema compatibility bootstrap failed")
        raise RuntimeError("Runtime schema compatibility bootstrap failed") from exc
