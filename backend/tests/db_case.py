from __future__ import annotations

import sys
import unittest
from datetime import date
from pathlib import Path
from typing import cast
from unittest.mock import patch

from typing_extensions import override

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeMeta
from sqlalchemy.pool import StaticPool

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from backend.inkwell.config import settings
from backend.inkwell.database import Base as _Base  # pyright: ignore[reportAny]
from backend.inkwell.database import install_sqlite_functions
from backend.inkwell.models import User
from backend.inkwell.services.journal import JournalService

Base = cast(DeclarativeMeta, _Base)


class JournalDBTestCase(unittest.IsolatedAsyncioTestCase):
    """内存 SQLite + 两个用户；PBKDF2 迭代次数调低以加快测试。"""

    engine: AsyncEngine | None = None
    session_factory: async_sessionmaker[AsyncSession] | None = None
    owner_id: int = 0
    other_owner_id: int = 0

    @override
    async def asyncSetUp(self):
        engine = create_async_engine(
            "sqlite+aiosqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        install_sqlite_functions(engine)
        self.engine = engine
        self.session_factory = async_sessionmaker(
            engine, class_=AsyncSession, expire_on_commit=False
        )

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        iterations_patch = patch.object(settings, "pbkdf2_iterations", 1000)
        iterations_patch.start()
        self.addCleanup(iterations_patch.stop)

        async with self.session_factory() as session:
            u1 = User(username="alice", password_hash="-")
            u2 = User(username="bob", password_hash="-")
            session.add_all([u1, u2])
            await session.commit()
            self.owner_id = u1.id
            self.other_owner_id = u2.id

    @override
    async def asyncTearDown(self):
        if self.engine is not None:
            await self.engine.dispose()

    async def save(
        self,
        day: date,
        *,
        owner_id: int | None = None,
        title: str | None = None,
        content: str = "",
        primary_mood: str = "Happy",
        secondary_moods: list[str] | None = None,
        tags: list[str] | None = None,
    ):
        assert self.session_factory is not None
        async with self.session_factory() as session:
            return await JournalService(session).create_or_update(
                owner_id or self.owner_id,
                day,
                title=title,
                content=content,
                primary_mood=primary_mood,
                secondary_moods=secondary_moods,
                tags=tags,
            )
