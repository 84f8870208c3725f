from coverdesk.models.absence import Absence, AbsenceStatus, AbsenceType  # noqa: F401
from coverdesk.models.activity_log import ActivityLog  # noqa: F401
from coverdesk.models.substitution import (  # noqa: F401
    BreakSupervisionSubstitution,
    Substitution,
    SubstitutionType,
    SupervisionSubstitutionType,
)
from coverdesk.models.supervision import BreakSupervisionDuty  # noqa: F401
from coverdesk.models.teacher import Department, Teacher, TeacherAvailability, TeacherSubject  # noqa: F401
from coverdesk.models.timetable import (  # noqa: F401
    Lesson,
    Period,
    Room,
    ScheduledLesson,
    SchoolClass,
    Subject,
    Timetable,
    TimetableStatus,
)
from coverdesk.models.user import User, UserRole  # noqa: F401
