import os
import tempfile
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

# The app's own engine is only touched by the startup schema bootstrap; keep it off the working tree.
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite:///{os.path.join(tempfile.mkdtemp(prefix='coverdesk-tests-'), 'runtime.db')}",
)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from jose import jwt  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import coverdesk.models  # noqa: E402,F401
from coverdesk.api.deps import get_db  # noqa: E402
from coverdesk.core.config import get_settings  # noqa: E402
from coverdesk.db.base import Base  # noqa: E402
from coverdesk.main import app  # noqa: E402
from coverdesk.models import (  # noqa: E402
    Absence,
    AbsenceStatus,
    AbsenceType,
    BreakSupervisionDuty,
    Department,
    Lesson,
    Period,
    Room,
    ScheduledLesson,
    SchoolClass,
    Subject,
    Teacher,
    TeacherAvailability,
    TeacherSubject,
    Timetable,
    TimetableStatus,
    User,
    UserRole,
)

MONDAY = date(2026, 10, 19)

PERIOD_TIMES = {
    1: (time(8, 0), time(8, 45)),
    2: (time(8, 50), time(9, 35)),
    3: (time(9, 55), time(10, 40)),
    4: (time(10, 45), time(11, 30)),
    5: (time(11, 45), time(12, 30)),
    6: (time(12, 35), time(13, 20)),
}


class SchoolFactory:
    """Builds roster and timetable rows directly through the session."""

    def __init__(self, db):
        self.db = db
        self._periods: dict[int, Period] = {}

    def _save(self, record):
        self.db.add(record)
        self.db.flush()
        return record

    def department(self, name):
        return self._save(Department(name=name))

    def subject(self, name, code=None):
        return self._save(Subject(name=name, code=code or name[:3].lower()))

    def school_class(self, name):
        return self._save(SchoolClass(name=name))

    def room(self, room_number):
        return self._save(Room(room_number=room_number))

    def teacher(
        self,
        first_name,
        last_name="Teacher",
        *,
        department=None,
        email=None,
        reserve=False,
        hourly_rate=None,
        qualifications=(),
        qualification_notes=None,
        is_active=True,
    ):
        teacher = self._save(
            Teacher(
                first_name=first_name,
                last_name=last_name,
                email=email,
                department_id=department.id if department is not None else None,
                available_for_substitution=reserve,
                substitution_hourly_rate=Decimal(str(hourly_rate)) if hourly_rate is not None else None,
                substitution_qualification_notes=qualification_notes,
                is_active=is_active,
            )
        )
        for subject in qualifications:
            self._save(TeacherSubject(teacher_id=teacher.id, subject_id=subject.id))
        return teacher

    def period(self, number, start=None, end=None, name=None):
        if number in self._periods:
            return self._periods[number]
        default_start, default_end = PERIOD_TIMES.get(number, (time(14, 0), time(14, 45)))
        period = self._save(
            Period(
                period_number=number,
                name=name or f"Period {number}",
                start_time=start or default_start,
                end_time=end or default_end,
            )
        )
        self._periods[number] = period
        return period

    def timetable(self, name="School year", status=TimetableStatus.published):
        return self._save(Timetable(name=name, status=status))

    def lesson(self, timetable, *, teachers, subjects, period, day=0, classes=(), rooms=()):
        lesson = Lesson()
        lesson.teachers = list(teachers)
        lesson.subjects = list(subjects)
        lesson.classes = list(classes)
        self._save(lesson)
        scheduled = ScheduledLesson(
            lesson_id=lesson.id,
            timetable_id=timetable.id,
            day_of_week=day,
            period_id=period.id,
        )
        scheduled.rooms = list(rooms)
        return self._save(scheduled)

    def duty(self, timetable, *, teacher, room, period_number, day=0, is_active=True):
        return self._save(
            BreakSupervisionDuty(
                timetable_id=timetable.id,
                room_id=room.id,
                teacher_id=teacher.id if teacher is not None else None,
                day_of_week=day,
                period_number=period_number,
                is_active=is_active,
            )
        )

    def availability(self, teacher, period, importance, *, day=0, reason=None):
        return self._save(
            TeacherAvailability(
                teacher_id=teacher.id,
                day_of_week=day,
                period_id=period.id,
                importance=importance,
                reason=reason,
            )
        )

    def absence(self, teacher, *, on_date=MONDAY, start=None, end=None, status=AbsenceStatus.reported):
        return self._save(
            Absence(
                teacher_id=teacher.id,
                date=on_date,
                start_time=start,
                end_time=end,
                absence_type=AbsenceType.sick,
                status=status,
                total_hours=Decimal("7.00"),
            )
        )

    def user(self, role=UserRole.scheduler, email=None):
        return self._save(
            User(name=f"{role.value.title()} User", email=email or f"{role.value}@school.example", role=role)
        )


@pytest.fixture()
def engine():
    test_engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def factory(db_session):
    return SchoolFactory(db_session)


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def issue_token(subject, *, expires_in=timedelta(hours=1)):
    """Sign a bearer token the way the school's identity service does."""
    settings = get_settings()
    claims = {"sub": subject, "exp": datetime.now(timezone.utc) + expires_in}
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


@pytest.fixture()
def auth_headers(factory, db_session):
    def build(role=UserRole.scheduler):
        user = factory.user(role=role, email=f"{role.value}-{os.urandom(4).hex()}@school.example")
        db_session.commit()
        return {"Authorization": f"Bearer {issue_token(user.id)}"}

    return build


@pytest.fixture()
def monday_scenario(factory, db_session):
    """T is absent all Monday: lessons at periods 1, 3 and 5 plus a Hof1 duty at period 3.

    U is the only other teacher; qualified for T's subject, free at 1 and 5,
    teaching at 3.
    """
    maths_department = factory.department("Mathematics")
    maths = factory.subject("Mathematics", code="ma")
    physics = factory.subject("Physics", code="ph")
    class_5a = factory.school_class("5a")
    room_101 = factory.room("101")
    yard = factory.room("Hof1")
    timetable = factory.timetable()

    absent = factory.teacher(
        "Theo", "Absent", department=maths_department, email="theo@school.example", qualifications=[maths]
    )
    substitute = factory.teacher(
        "Uma",
        "Cover",
        department=maths_department,
        email="uma@school.example",
        reserve=True,
        hourly_rate=30,
        qualifications=[maths, physics],
    )

    lessons = {
        number: factory.lesson(
            timetable,
            teachers=[absent],
            subjects=[maths],
            classes=[class_5a],
            rooms=[room_101],
            period=factory.period(number),
        )
        for number in (1, 3, 5)
    }
    substitute_lesson = factory.lesson(
        timetable,
        teachers=[substitute],
        subjects=[physics],
        period=factory.period(3),
    )
    duty = factory.duty(timetable, teacher=absent, room=yard, period_number=3)
    absence = factory.absence(absent)
    db_session.commit()

    return SimpleNamespace(
        timetable=timetable,
        absent=absent,
        substitute=substitute,
        maths=maths,
        physics=physics,
        department=maths_department,
        lessons=lessons,
        substitute_lesson=substitute_lesson,
        duty=duty,
        absence=absence,
        yard=yard,
    )
