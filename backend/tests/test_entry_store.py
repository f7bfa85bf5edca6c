from __future__ import annotations

import sys
import unittest
from datetime import date, datetime, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from backend.inkwell.models import JournalEntry
from backend.inkwell.services.entry_store import EntryStore
from backend.inkwell.utils.errors import ConflictError, UnauthorizedError
from backend.tests.db_case import JournalDBTestCase


class EntryStoreTests(JournalDBTestCase):
    def _row(self, day: date, owner_id: int | None = None) -> JournalEntry:
        row = JournalEntry(
            owner_id=owner_id or self.owner_id,
            day=day,
            content="text",
            created_at=datetime.now(timezone.utc),
            primary_mood="Calm",
        )
        row.tags = ["Work"]
        return row

    async def test_second_row_for_same_owner_day_is_a_conflict(self):
        assert self.session_factory is not None
        async with self.session_factory() as session:
            store = EntryStore(session)
            await store.upsert(self._row(date(2024, 1, 1)))
            with self.assertRaises(ConflictError):
                await store.upsert(self._row(date(2024, 1, 1)))

            # 冲突后会话已回滚，仍可继续使用
            days = await store.list_days(self.owner_id)
        self.assertEqual(days, [date(2024, 1, 1)])

    async def test_same_day_for_different_owners_is_allowed(self):
        assert self.session_factory is not None
        async with self.session_factory() as session:
            store = EntryStore(session)
            await store.upsert(self._row(date(2024, 1, 1)))
            await store.upsert(self._row(date(2024, 1, 1), owner_id=self.other_owner_id))

            mine = await store.find_by_day(self.owner_id, date(2024, 1, 1))
            theirs = await store.find_by_day(self.other_owner_id, date(2024, 1, 1))

        assert mine is not None and theirs is not None
        self.assertNotEqual(mine.id, theirs.id)

    async def test_delete_is_idempotent(self):
        assert self.session_factory is not None
        async with self.session_factory() as session:
            store = EntryStore(session)
            row = await store.upsert(self._row(date(2024, 1, 2)))
            entry_id = row.id

            deleted = await store.delete(self.owner_id, entry_id)
            self.assertIsNotNone(deleted)
            self.assertIsNone(await store.delete(self.owner_id, entry_id))
            self.assertIsNone(await store.delete_by_day(self.owner_id, date(2024, 1, 2)))
            self.assertIsNone(await store.find_by_id(self.owner_id, entry_id))

    async def test_other_owner_cannot_read_or_delete_by_id(self):
        assert self.session_factory is not None
        async with self.session_factory() as session:
            store = EntryStore(session)
            row = await store.upsert(self._row(date(2024, 1, 3)))

            self.assertIsNone(await store.find_by_id(self.other_owner_id, row.id))
            self.assertIsNone(await store.delete(self.other_owner_id, row.id))
            self.assertIsNotNone(await store.find_by_id(self.owner_id, row.id))

    async def test_list_range_is_half_open_and_ascending(self):
        assert self.session_factory is not None
        async with self.session_factory() as session:
            store = EntryStore(session)
            for d in (date(2024, 1, 5), date(2024, 1, 1), date(2024, 1, 3), date(2024, 1, 10)):
                await store.upsert(self._row(d))

            items = await store.list_range(self.owner_id, date(2024, 1, 1), date(2024, 1, 10))
            everything = await store.list_by_owner(self.owner_id)

        self.assertEqual([e.day for e in items], [date(2024, 1, 1), date(2024, 1, 3), date(2024, 1, 5)])
        self.assertEqual(
            [e.day for e in everything],
            [date(2024, 1, 10), date(2024, 1, 5), date(2024, 1, 3), date(2024, 1, 1)],
        )

    async def test_missing_owner_is_rejected(self):
        assert self.session_factory is not None
        async with self.session_factory() as session:
            store = EntryStore(session)
            with self.assertRaises(UnauthorizedError):
                await store.list_days(0)
            with self.assertRaises(UnauthorizedError):
                await store.find_by_day(None, date(2024, 1, 1))  # type: ignore[arg-type]


if __name__ == "__main__":
    unittest.main()
