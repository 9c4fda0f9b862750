"""Database dependencies for FastAPI dependency injection.

Usage:
    from tutor.app.db.dependencies import SessionDep

    @router.post("/chat")
    async def chat(session: SessionDep):
        ...
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tutor.app.db.async_session import get_db

SessionDep = Annotated[AsyncSession, Depends(get_db)]

__all__ = ["SessionDep"]
