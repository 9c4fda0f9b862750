"""Database package: student and material store."""

from tutor.app.db.async_session import (
    close_async_engine,
    get_async_engine,
    get_async_session,
    get_db,
)
from tutor.app.db.crud import (
    SqlStudentStore,
    get_student_by_id,
    increment_student_xp,
    list_materials_by_subject,
)
from tutor.app.db.models import STUDY_MIME_TYPES, Material, Student, Subject

__all__ = [
    "SqlStudentStore",
    "close_async_engine",
    "get_async_engine",
    "get_async_session",
    "get_db",
    "get_student_by_id",
    "increment_student_xp",
    "list_materials_by_subject",
    "STUDY_MIME_TYPES",
    "Material",
    "Student",
    "Subject",
]
