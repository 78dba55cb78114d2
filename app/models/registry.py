"""Imports every mapped class so `Base.metadata` and string relationships resolve."""
from app.models.user import User  # noqa: F401
from app.models.course import Course  # noqa: F401
from app.models.course_module import CourseModule  # noqa: F401
from app.models.lesson import Lesson  # noqa: F401
from app.models.assignment import Assignment  # noqa: F401
from app.models.course_enrollment import CourseEnrollment  # noqa: F401
from app.models.lesson_progress import LessonProgress  # noqa: F401
from app.models.assignment_submission import AssignmentSubmission  # noqa: F401
from app.models.course_progress import CourseProgressSnapshot  # noqa: F401
from app.models.study_stat import DailyStudyStat  # noqa: F401
from app.models.course_payment import CoursePayment  # noqa: F401
from app.models.notification import Notification  # noqa: F401
