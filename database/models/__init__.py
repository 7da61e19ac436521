"""ORM models. Importing this package registers every table on ``Base.metadata``."""

from database.models.users import User, UserRole, UserSession
from database.models.students import Student
from database.models.periods import Period
from database.models.statuses import Status
from database.models.files import FileType, StudentFile
from database.models.interviews import (
    Interview,
    InterviewSlot,
    InterviewParticipant,
    InterviewNote,
)
from database.models.scoring import Question, ScoreCategory, ScoreMatrix
from database.models.notifications import Notification, NotificationEndpoint

__all__ = [
    "User",
    "UserRole",
    "UserSession",
    "Student",
    "Period",
    "Status",
    "FileType",
    "StudentFile",
    "Interview",
    "InterviewSlot",
    "InterviewParticipant",
    "InterviewNote",
    "Question",
    "ScoreCategory",
    "ScoreMatrix",
    "Notification",
    "NotificationEndpoint",
]
