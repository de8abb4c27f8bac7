from .database import Database
from .models import (
    AgentExecution,
    AuditLog,
    Course,
    Enrollment,
    Pdf,
    Section,
    User,
    Video,
)

__all__ = [
    "AgentExecution",
    "AuditLog",
    "Course",
    "Database",
    "Enrollment",
    "Pdf",
    "Section",
    "User",
    "Video",
]
