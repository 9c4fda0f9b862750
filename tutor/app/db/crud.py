"""Student and material CRUD operations."""
from typing import List, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tutor.app.db.models import STUDY_MIME_TYPES, Material, Student


async def get_student_by_id(session: AsyncSession, student_id: int) -> Optional[Student]:
    """Get a student by ID.

    Returns:
        Student object if found, None otherwise
    """
    result = await session.execute(select(Student).where(Student.id == student_id))
    return result.scalar_one_or_none()


async def increment_student_xp(session: AsyncSession, student_id: int, amount: int) -> int:
    """Atomically add XP to a student.

    The increment is applied in SQL so concurrent awards never overwrite
    each other.

    Returns:
        The student's XP after the increment (0 if the student is missing)
    """
    result = await session.execute(
        update(Student)
        .where(Student.id == student_id)
        .values(xp=Student.xp + amount)
        .returning(Student.xp)
    )
    new_xp = result.scalar_one_or_none()
    await session.flush()
    return new_xp or 0


async def list_materials_by_subject(
    session: AsyncSession,
    subject_id: Optional[int],
    mime_types: Sequence[str] = STUDY_MIME_TYPES,
) -> List[Material]:
    """List a subject's materials restricted to the given MIME types."""
    if subject_id is None:
        return []
    result = await session.execute(
        select(Material)
        .where(Material.subject_id == subject_id, Material.mime_type.in_(mime_types))
        .order_by(Material.created_at, Material.id)
    )
    return list(result.scalars().all())


class SqlStudentStore:
    """Student and material access bound to one database session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_student(self, student_id: int) -> Optional[Student]:
        return await get_student_by_id(self.session, student_id)

    async def add_xp(self, student_id: int, amount: int) -> int:
        return await increment_student_xp(self.session, student_id, amount)

    async def study_materials(self, subject_id: Optional[int]) -> List[Material]:
        return await list_materials_by_subject(self.session, subject_id)
