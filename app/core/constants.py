from enum import Enum


class RoleEnum(str, Enum):
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"

class LessonTypeEnum(str, Enum):
    VIDEO = "video"
    TEXT = "text"
    PDF = "pdf"

class SubmissionStatusEnum(str, Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    COMPLETED = "completed"

class ContentUnitTypeEnum(str, Enum):
    LESSON = "lesson"
    ASSIGNMENT = "assignment"
    RESOURCE = "resource"
    DISCUSSION = "discussion"
    ATTENDANCE = "attendance"

class AccessDecisionEnum(str, Enum):
    ALLOWED = "allowed"
    LOCKED = "locked"
    NOT_ENROLLED = "not_enrolled"

class EnrollmentOutcomeEnum(str, Enum):
    ENROLLED = "enrolled"
    PAYMENT_REQUIRED = "payment_required"


# Engagement scoring
LESSON_COMPLETION_POINTS = 10
ASSIGNMENT_COMPLETION_POINTS = 20
DAILY_MINUTES_THRESHOLD = 60
DAILY_HOUR_BONUS_POINTS = 5

DEFAULT_ASSIGNMENT_POINTS = 100
