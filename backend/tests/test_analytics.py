from __future__ import annotations

import sys
import unittest
from datetime import date
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from backend.inkwell.services import analytics
from backend.inkwell.services.locking import lock_entry
from backend.tests.db_case import JournalDBTestCase


class ComputeStreakTests(unittest.TestCase):
    def test_current_and_longest_streak(self):
        days = [
            date(2024, 1, 1),
            date(2024, 1, 2),
            date(2024, 1, 3),
            date(2024, 1, 5),
            date(2024, 1, 6),
        ]
        info = analytics.compute_streak(days, date(2024, 1, 6), 0)
        self.assertEqual(info.current_streak, 2)
        self.assertEqual(info.longest_streak, 3)

    def test_current_streak_is_zero_without_entry_today(self):
        info = analytics.compute_streak([date(2024, 1, 4), date(2024, 1, 5)], date(2024, 1, 6), 0)
        self.assertEqual(info.current_streak, 0)
        self.assertEqual(info.longest_streak, 2)

    def test_missed_dates_in_lookback_window(self):
        days = [date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 3), date(2024, 1, 5)]
        info = analytics.compute_streak(days, date(2024, 1, 5), 5)
        self.assertEqual(info.missed_dates, [date(2024, 1, 4)])

        wider = analytics.compute_streak(days, date(2024, 1, 7), 4)
        self.assertEqual(wider.missed_dates, [date(2024, 1, 4), date(2024, 1, 6), date(2024, 1, 7)])

    def test_no_days(self):
        info = analytics.compute_streak([], date(2024, 1, 6), 3)
        self.assertEqual(info.current_streak, 0)
        self.assertEqual(info.longest_streak, 0)
        self.assertEqual(info.missed_dates, [date(2024, 1, 4), date(2024, 1, 5), date(2024, 1, 6)])


class HelperTests(unittest.TestCase):
    def test_count_words(self):
        self.assertEqual(analytics.count_words("  one two\n\tthree  "), 3)
        self.assertEqual(analytics.count_words("   "), 0)
        self.assertEqual(analytics.count_words(None), 0)

    def test_subtract_months_clamps_day(self):
        self.assertEqual(analytics.subtract_months(date(2024, 3, 31), 1), date(2024, 2, 29))
        self.assertEqual(analytics.subtract_months(date(2024, 1, 15), 12), date(2023, 1, 15))
        self.assertEqual(analytics.subtract_months(date(2024, 1, 15), 0), date(2024, 1, 15))


class AnalyticsQueryTests(JournalDBTestCase):
    async def test_mood_frequencies_count_primary_and_secondary(self):
        await self.save(date(2024, 1, 1), primary_mood="Happy", secondary_moods=["Calm"])
        await self.save(date(2024, 1, 2), primary_mood="happy", secondary_moods=["Tired", "Calm"])
        await self.save(date(2024, 1, 3), primary_mood="Sad")

        assert self.session_factory is not None
        async with self.session_factory() as session:
            moods = await analytics.mood_frequencies(session, self.owner_id)

        self.assertEqual(moods, {"Calm": 2, "Happy": 2, "Sad": 1, "Tired": 1})
        self.assertEqual(list(moods), ["Calm", "Happy", "Sad", "Tired"])

    async def test_tag_frequencies(self):
        await self.save(date(2024, 1, 1), tags=["Work", "Goals"])
        await self.save(date(2024, 1, 2), tags=["work"])
        await self.save(date(2024, 1, 3))

        assert self.session_factory is not None
        async with self.session_factory() as session:
            tags = await analytics.tag_frequencies(session, self.owner_id)

        self.assertEqual(tags, {"Work": 2, "Goals": 1})

    async def test_word_count_trends_by_month(self):
        await self.save(date(2023, 12, 20), content="too old to count")
        await self.save(date(2024, 1, 5), content="one two three")
        await self.save(date(2024, 1, 20), content="four five")
        await self.save(date(2024, 3, 1), content="six")
        await self.save(date(2024, 3, 2), content="")

        assert self.session_factory is not None
        async with self.session_factory() as session:
            trends = await analytics.word_count_trends(
                session, self.owner_id, 2, today=date(2024, 3, 5)
            )

        self.assertEqual(trends, {date(2024, 1, 1): 5, date(2024, 3, 1): 1})

    async def test_locked_entries_still_count_words(self):
        await self.save(date(2024, 3, 1), content="private words here")
        assert self.session_factory is not None
        async with self.session_factory() as session:
            await lock_entry(session, self.owner_id, date(2024, 3, 1), "pw")
            trends = await analytics.word_count_trends(
                session, self.owner_id, 1, today=date(2024, 3, 15)
            )
        self.assertEqual(trends, {date(2024, 3, 1): 3})

    async def test_streak_info_and_overview(self):
        for d in (date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 3), date(2024, 1, 5)):
            await self.save(d, primary_mood="Calm", tags=["Health"])

        assert self.session_factory is not None
        async with self.session_factory() as session:
            info = await analytics.streak_info(session, self.owner_id, 5, today=date(2024, 1, 5))
            overview = await analytics.stats_overview(session, self.owner_id, today=date(2024, 1, 5))

        self.assertEqual(info.current_streak, 1)
        self.assertEqual(info.longest_streak, 3)
        self.assertEqual(info.missed_dates, [date(2024, 1, 4)])

        self.assertEqual(overview.total_entries, 4)
        self.assertEqual(overview.first_day, date(2024, 1, 1))
        self.assertEqual(overview.last_day, date(2024, 1, 5))
        self.assertEqual(overview.top_mood, "Calm")
        self.assertEqual(overview.top_tag, "Health")

    async def test_empty_owner_gets_empty_results(self):
        assert self.session_factory is not None
        async with self.session_factory() as session:
            self.assertEqual(await analytics.mood_frequencies(session, self.owner_id), {})
            self.assertEqual(await analytics.tag_frequencies(session, self.owner_id), {})
            self.assertEqual(
                await analytics.word_count_trends(session, self.owner_id, 12, today=date(2024, 1, 1)),
                {},
            )
            info = await analytics.streak_info(session, self.owner_id, 0, today=date(2024, 1, 1))
            overview = await analytics.stats_overview(session, self.owner_id, today=date(2024, 1, 1))

        self.assertEqual(info.current_streak, 0)
        self.assertEqual(info.longest_streak, 0)
        self.assertEqual(info.missed_dates, [])
        self.assertEqual(overview.total_entries, 0)
        self.assertIsNone(overview.top_mood)
        self.assertIsNone(overview.first_day)


if __name__ == "__main__":
    unittest.main()
