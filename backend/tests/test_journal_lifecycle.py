from __future__ import annotations

import asyncio
import shutil
import sys
import tempfile
import unittest
from datetime import date
from pathlib import Path

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from backend.inkwell.database import install_sqlite_pragmas
from backend.inkwell.models import JournalEntry, User
from backend.inkwell.services.journal import JournalService
from backend.inkwell.utils.errors import ConflictError, NotFoundError, ValidationError
from backend.tests.db_case import Base, JournalDBTestCase


class JournalLifecycleTests(JournalDBTestCase):
    async def test_create_normalizes_fields(self):
        entry = await self.save(
            date(2024, 3, 1),
            title="  Morning  ",
            content="  went for a run  ",
            primary_mood=" Happy ",
            secondary_moods=["Calm", "happy", "Calm", "Tired", "Excited"],
            tags=[" Health ", "health", "", "Goals"],
        )

        self.assertEqual(entry.title, "Morning")
        self.assertEqual(entry.content, "went for a run")
        self.assertEqual(entry.primary_mood, "Happy")
        self.assertEqual(entry.secondary_moods, ["Calm", "Tired"])
        self.assertEqual(entry.tags, ["Health", "Goals"])
        self.assertIsNotNone(entry.created_at)
        self.assertIsNone(entry.updated_at)
        self.assertFalse(entry.is_locked)

        assert self.session_factory is not None
        async with self.session_factory() as session:
            reread = await JournalService(session).get_by_day(self.owner_id, date(2024, 3, 1))
        assert reread is not None
        self.assertEqual(reread.secondary_moods, ["Calm", "Tired"])
        self.assertEqual(reread.tags, ["Health", "Goals"])

    async def test_blank_title_is_stored_as_none(self):
        entry = await self.save(date(2024, 3, 2), title="   ")
        self.assertIsNone(entry.title)

    async def test_save_same_day_updates_in_place(self):
        first = await self.save(date(2024, 3, 3), content="draft", tags=["Work"])
        second = await self.save(date(2024, 3, 3), content="final", primary_mood="Calm")

        self.assertEqual(first.id, second.id)
        self.assertEqual(second.content, "final")
        self.assertEqual(second.primary_mood, "Calm")
        self.assertEqual(second.tags, [])
        self.assertEqual(second.created_at, first.created_at)
        self.assertIsNotNone(second.updated_at)

        assert self.session_factory is not None
        async with self.session_factory() as session:
            count = await session.scalar(
                select(func.count()).select_from(JournalEntry).where(JournalEntry.owner_id == self.owner_id)
            )
        self.assertEqual(count, 1)

    async def test_primary_mood_is_required(self):
        with self.assertRaises(ValidationError):
            await self.save(date(2024, 3, 4), primary_mood="   ")

        assert self.session_factory is not None
        async with self.session_factory() as session:
            self.assertEqual(await JournalService(session).entry_days(self.owner_id), [])

    async def test_title_length_is_limited(self):
        with self.assertRaises(ValidationError):
            await self.save(date(2024, 3, 5), title="x" * 201)

    async def test_strict_create_conflicts_on_existing_day(self):
        await self.save(date(2024, 3, 6))
        assert self.session_factory is not None
        async with self.session_factory() as session:
            with self.assertRaises(ConflictError):
                await JournalService(session).create_entry(self.owner_id, date(2024, 3, 6), primary_mood="Sad")

    async def test_update_by_id(self):
        created = await self.save(date(2024, 3, 7), content="a")
        assert self.session_factory is not None
        async with self.session_factory() as session:
            service = JournalService(session)
            updated = await service.update_entry(self.owner_id, created.id, content="b", primary_mood="Calm")
            self.assertEqual(updated.content, "b")
            self.assertEqual(updated.day, date(2024, 3, 7))

            with self.assertRaises(NotFoundError):
                await service.update_entry(self.other_owner_id, created.id, content="x", primary_mood="Calm")

    async def test_delete_then_recreate(self):
        created = await self.save(date(2024, 3, 8))
        assert self.session_factory is not None
        async with self.session_factory() as session:
            service = JournalService(session)
            self.assertTrue(await service.delete_entry(self.owner_id, created.id))
            self.assertFalse(await service.delete_entry(self.owner_id, created.id))
            self.assertFalse(await service.delete_by_day(self.owner_id, date(2024, 3, 8)))

        again = await self.save(date(2024, 3, 8))
        self.assertNotEqual(again.id, created.id)

    async def test_page_orders_by_created_desc(self):
        for d in (date(2024, 3, 10), date(2024, 3, 9), date(2024, 3, 11)):
            await self.save(d)

        assert self.session_factory is not None
        async with self.session_factory() as session:
            page = await JournalService(session).page(self.owner_id, 0, 2)

        self.assertEqual(page.total, 3)
        self.assertEqual([e.day for e in page.items], [date(2024, 3, 11), date(2024, 3, 9)])
        self.assertTrue(page.has_more)


class ConcurrentCreateTests(unittest.IsolatedAsyncioTestCase):
    """两个会话同时严格创建同一天：唯一约束保证只有一方成功。"""

    async def asyncSetUp(self):
        self.tmpdir = tempfile.mkdtemp(prefix="inkwell-test-")
        db_path = Path(self.tmpdir) / "journal.db"
        self.engine = create_async_engine(f"sqlite+aiosqlite:///{db_path.as_posix()}")
        install_sqlite_pragmas(self.engine)
        self.session_factory = async_sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        async with self.session_factory() as session:
            user = User(username="carol", password_hash="-")
            session.add(user)
            await session.commit()
            self.owner_id = user.id

    async def asyncTearDown(self):
        await self.engine.dispose()
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    async def _create(self, content: str):
        async with self.session_factory() as session:
            return await JournalService(session).create_entry(
                self.owner_id,
                date(2024, 5, 1),
                content=content,
                primary_mood="Calm",
            )

    async def test_exactly_one_strict_create_wins(self):
        results = await asyncio.gather(
            self._create("first"),
            self._create("second"),
            return_exceptions=True,
        )

        winners = [r for r in results if not isinstance(r, BaseException)]
        conflicts = [r for r in results if isinstance(r, ConflictError)]
        self.assertEqual(len(winners), 1)
        self.assertEqual(len(conflicts), 1)

        async with self.session_factory() as session:
            stored = await JournalService(session).list_entries(self.owner_id)
        self.assertEqual(len(stored), 1)
        self.assertEqual(stored[0].content, winners[0].content)


if __name__ == "__main__":
    unittest.main()
