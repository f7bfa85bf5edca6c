"""统计：心情/标签频次、按月字数趋势、连续写作天数。

这些都是纯读取计算；没有条目时返回空结果或 0，而不是报错。
"""

from __future__ import annotations

import calendar
import logging
import re
from collections.abc import Iterable
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..models import JournalEntry
from ..schemas import StatsOverviewResponse, StreakInfo
from ..utils.errors import ensure_owner
from ..utils.normalize import split_values
from .entry_store import EntryStore, storage_guard

logger = logging.getLogger(__name__)

_WS_RE = re.compile(r"\s+", flags=re.UNICODE)


def journal_today() -> date:
    """按配置的时区取“今天”；时区无效时回退到服务器本地日期。"""
    tz_name = settings.journal_timezone
    if tz_name:
        try:
            return datetime.now(ZoneInfo(tz_name)).date()
        except ZoneInfoNotFoundError:
            logger.warning("[STATS] Unknown JOURNAL_TIMEZONE=%s, using local time", tz_name)
    return date.today()


def count_words(text: str | None) -> int:
    if not text or not text.strip():
        return 0
    return len(_WS_RE.split(text.strip()))


def subtract_months(day: date, months: int) -> date:
    """day 往前推 months 个月；目标月份没有这一天时取该月最后一天。"""
    total = day.year * 12 + (day.month - 1) - int(months)
    year, month_index = divmod(total, 12)
    month = month_index + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def _ranked_counts(values: Iterable[str]) -> dict[str, int]:
    # 大小写不敏感合并，保留首次出现的写法；按次数倒序，同次数按名称排序
    counts: dict[str, int] = {}
    display: dict[str, str] = {}
    for raw in values:
        value = (raw or "").strip()
        if not value:
            continue
        key = value.casefold()
        if key not in display:
            display[key] = value
        counts[key] = counts.get(key, 0) + 1

    ranked = sorted(counts.items(), key=lambda kv: (-kv[1], display[kv[0]].casefold()))
    return {display[key]: n for key, n in ranked}


async def mood_frequencies(db: AsyncSession, owner_id: int) -> dict[str, int]:
    """主心情 + 每个非空次要心情各计一次。"""
    owner_id = ensure_owner(owner_id)
    async with storage_guard(db, "mood_frequencies"):
        rows = await db.execute(
            select(JournalEntry.primary_mood, JournalEntry.secondary_moods_text)
            .where(JournalEntry.owner_id == owner_id)
            .order_by(JournalEntry.day.asc())
        )
        pairs = rows.all()

    def _iter():
        for primary, secondary in pairs:
            if primary:
                yield primary
            yield from split_values(secondary)

    return _ranked_counts(_iter())


async def tag_frequencies(db: AsyncSession, owner_id: int) -> dict[str, int]:
    owner_id = ensure_owner(owner_id)
    async with storage_guard(db, "tag_frequencies"):
        rows = await db.scalars(
            select(JournalEntry.tags_text)
            .where(
                JournalEntry.owner_id == owner_id,
                JournalEntry.tags_text.is_not(None),
                JournalEntry.tags_text != "",
            )
            .order_by(JournalEntry.day.asc())
        )
        tag_texts = list(rows.all())

    return _ranked_counts(tag for text in tag_texts for tag in split_values(text))


async def word_count_trends(
    db: AsyncSession,
    owner_id: int,
    months_back: int | None = None,
    *,
    today: date | None = None,
) -> dict[date, int]:
    """按月（每月 1 日为 key）汇总字数，仅统计 day >= today - months_back 个月的条目。"""
    owner_id = ensure_owner(owner_id)
    if months_back is None or months_back < 0:
        months_back = settings.word_trend_months
    today = today or journal_today()
    since = subtract_months(today, months_back)

    async with storage_guard(db, "word_count_trends"):
        rows = await db.execute(
            select(JournalEntry.day, JournalEntry.content).where(
                JournalEntry.owner_id == owner_id,
                JournalEntry.day >= since,
            )
        )
        pairs = rows.all()

    trends: dict[date, int] = {}
    for day, content in pairs:
        month_key = date(day.year, day.month, 1)
        trends[month_key] = trends.get(month_key, 0) + count_words(content)
    return dict(sorted(trends.items()))


def compute_streak(days: Iterable[date], today: date, lookback_days: int) -> StreakInfo:
    """连续写作统计。

    - current：从今天往前逐日计数，遇到第一个空缺停止（今天没写则为 0）；
    - longest：对每个“前一天不在集合里”的日期（连续段起点）向后数，取最大段长；
    - missed：最近 lookback_days 天（含今天）里没有条目的日期，升序。
    """
    day_set = set(days)
    one_day = timedelta(days=1)

    current = 0
    cursor = today
    while cursor in day_set:
        current += 1
        cursor -= one_day

    longest = 0
    for d in day_set:
        if d - one_day in day_set:
            continue
        run = 0
        cursor = d
        while cursor in day_set:
            run += 1
            cursor += one_day
        longest = max(longest, run)

    missed: list[date] = []
    for offset in range(max(0, int(lookback_days)) - 1, -1, -1):
        check = today - timedelta(days=offset)
        if check not in day_set:
            missed.append(check)

    return StreakInfo(current_streak=current, longest_streak=longest, missed_dates=missed)


async def streak_info(
    db: AsyncSession,
    owner_id: int,
    lookback_days: int | None = None,
    *,
    today: date | None = None,
) -> StreakInfo:
    if lookback_days is None or lookback_days < 0:
        lookback_days = settings.streak_lookback_days
    days = await EntryStore(db).list_days(owner_id)
    return compute_streak(days, today or journal_today(), lookback_days)


async def stats_overview(
    db: AsyncSession,
    owner_id: int,
    *,
    today: date | None = None,
) -> StatsOverviewResponse:
    """仪表盘概览：条目数、首末日期、连续天数、最常见心情/标签。"""
    days = await EntryStore(db).list_days(owner_id)
    streak = compute_streak(days, today or journal_today(), 0)
    moods = await mood_frequencies(db, owner_id)
    tags = await tag_frequencies(db, owner_id)

    return StatsOverviewResponse(
        total_entries=len(days),
        first_day=days[0] if days else None,
        last_day=days[-1] if days else None,
        current_streak=streak.current_streak,
        longest_streak=streak.longest_streak,
        top_mood=next(iter(moods), None),
        top_tag=next(iter(tags), None),
    )
