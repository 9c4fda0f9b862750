"""Tests for the student and material store over SQLite."""

from contextlib import asynccontextmanager

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from tutor.app.db.crud import (
    SqlStudentStore,
    get_student_by_id,
    increment_student_xp,
    list_materials_by_subject,
)
from tutor.app.db.init_db import init_db
from tutor.app.db.models import Material, Student, Subject

PPTX = "application/vnd.openxmlformats-officedocument.presentationml.presentation"


@asynccontextmanager
async def seeded_session():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    await init_db(engine)
    async with async_sessionmaker(engine, expire_on_commit=False)() as session:
        session.add_all(
            [
                Student(id=7, name="Ana", xp=150),
                Subject(id=3, name="Física"),
                Subject(id=4, name="Química"),
                Material(id=1, name="Cinematica.pdf", mime_type="application/pdf", subject_id=3),
                Material(id=2, name="Dinamica.pptx", mime_type=PPTX, subject_id=3),
                Material(id=3, name="foto.png", mime_type="image/png", subject_id=3),
                Material(id=4, name="Enlaces.pdf", mime_type="application/pdf", subject_id=4),
            ]
        )
        await session.commit()
        yield session
    await engine.dispose()


class TestCrud:
    @pytest.mark.asyncio
    async def test_get_student(self):
        async with seeded_session() as session:
            student = await get_student_by_id(session, 7)
            assert student.name == "Ana"
            assert student.level == 2
            assert await get_student_by_id(session, 99) is None

    @pytest.mark.asyncio
    async def test_increment_xp_returns_new_total(self):
        async with seeded_session() as session:
            assert await increment_student_xp(session, 7, 20) == 170
            assert await increment_student_xp(session, 7, 5) == 175

    @pytest.mark.asyncio
    async def test_increment_xp_for_missing_student(self):
        async with seeded_session() as session:
            assert await increment_student_xp(session, 99, 5) == 0

    @pytest.mark.asyncio
    async def test_materials_filtered_by_subject_and_type(self):
        async with seeded_session() as session:
            materials = await list_materials_by_subject(session, 3)
            assert [m.name for m in materials] == ["Cinematica.pdf", "Dinamica.pptx"]
            assert [m.short_type for m in materials] == ["pdf", PPTX.split("/")[-1]]

    @pytest.mark.asyncio
    async def test_no_subject_no_materials(self):
        async with seeded_session() as session:
            assert await list_materials_by_subject(session, None) == []


class TestSqlStudentStore:
    @pytest.mark.asyncio
    async def test_store_delegates(self):
        async with seeded_session() as session:
            store = SqlStudentStore(session)
            assert (await store.get_student(7)).xp == 150
            assert await store.add_xp(7, 2) == 152
            assert [m.id for m in await store.study_materials(4)] == [4]
