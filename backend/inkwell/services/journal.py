"""条目生命周期：校验、归一化、时间戳，以及创建/更新/删除。"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from ..models import JournalEntry
from ..schemas import Entry
from ..utils.errors import ConflictError, NotFoundError, ValidationError, ensure_owner
from ..utils.normalize import (
    MAX_TITLE_LENGTH,
    normalize_content,
    normalize_mood,
    normalize_secondary_moods,
    normalize_tags,
    normalize_title,
)
from .entry_store import EntryStore
from .events import ENTRY_CREATED, ENTRY_DELETED, ENTRY_UPDATED, ChangeNotifier, notify
from .redaction import present
from .search import SearchPage, search_entries

logger = logging.getLogger(__name__)

AVAILABLE_MOODS = [
    "Happy",
    "Sad",
    "Angry",
    "Anxious",
    "Excited",
    "Calm",
    "Tired",
    "Motivated",
    "Frustrated",
    "Content",
    "Overwhelmed",
    "Peaceful",
]

SUGGESTED_TAGS = [
    "Work",
    "Family",
    "Health",
    "Travel",
    "Friends",
    "Hobbies",
    "Learning",
    "Goals",
    "Reflection",
    "Gratitude",
    "Challenges",
    "Achievements",
]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _EntryFields:
    """一次保存请求归一化后的字段。"""

    __slots__ = ("title", "content", "primary_mood", "secondary_moods", "tags")

    def __init__(
        self,
        *,
        title: str | None,
        content: str | None,
        primary_mood: str | None,
        secondary_moods: Iterable[str] | None,
        tags: Iterable[str] | None,
    ):
        self.primary_mood = normalize_mood(primary_mood)
        if not self.primary_mood:
            raise ValidationError("Primary mood is required")

        self.title = normalize_title(title)
        if self.title is not None and len(self.title) > MAX_TITLE_LENGTH:
            raise ValidationError(f"Title must be at most {MAX_TITLE_LENGTH} characters")

        self.content = normalize_content(content)
        self.secondary_moods = normalize_secondary_moods(secondary_moods, self.primary_mood)
        self.tags = normalize_tags(tags)

    def apply(self, row: JournalEntry) -> None:
        row.title = self.title
        row.content = self.content
        row.primary_mood = self.primary_mood
        row.secondary_moods = self.secondary_moods
        row.tags = self.tags


class JournalService:
    """条目的创建/更新/删除入口；读取全部经过脱敏。

    每次写入成功后通过 notifier 广播变更，供展示层刷新。
    """

    def __init__(self, db: AsyncSession, notifier: ChangeNotifier | None = None):
        self.db = db
        self.store = EntryStore(db)
        self.notifier = notifier

    async def create_or_update(
        self,
        owner_id: int,
        day: date,
        *,
        title: str | None = None,
        content: str | None = "",
        primary_mood: str | None = None,
        secondary_moods: Iterable[str] | None = None,
        tags: Iterable[str] | None = None,
    ) -> Entry:
        """保存某一天的条目：不存在则创建，存在则原地更新（不会产生新行）。"""
        owner_id = ensure_owner(owner_id)
        fields = _EntryFields(
            title=title,
            content=content,
            primary_mood=primary_mood,
            secondary_moods=secondary_moods,
            tags=tags,
        )

        row = await self.store.get_row_by_day(owner_id, day)
        if row is None:
            return await self._insert(owner_id, day, fields)
        return await self._update(row, fields)

    async def create_entry(
        self,
        owner_id: int,
        day: date,
        *,
        title: str | None = None,
        content: str | None = "",
        primary_mood: str | None = None,
        secondary_moods: Iterable[str] | None = None,
        tags: Iterable[str] | None = None,
    ) -> Entry:
        """严格创建：当天已有条目时抛出 ConflictError，提示改走更新。"""
        owner_id = ensure_owner(owner_id)
        fields = _EntryFields(
            title=title,
            content=content,
            primary_mood=primary_mood,
            secondary_moods=secondary_moods,
            tags=tags,
        )
        # 这里只是提前给出友好提示；真正的裁决是数据库唯一约束
        if await self.store.get_row_by_day(owner_id, day) is not None:
            raise ConflictError()
        return await self._insert(owner_id, day, fields)

    async def update_entry(
        self,
        owner_id: int,
        entry_id: int,
        *,
        title: str | None = None,
        content: str | None = "",
        primary_mood: str | None = None,
        secondary_moods: Iterable[str] | None = None,
        tags: Iterable[str] | None = None,
    ) -> Entry:
        owner_id = ensure_owner(owner_id)
        fields = _EntryFields(
            title=title,
            content=content,
            primary_mood=primary_mood,
            secondary_moods=secondary_moods,
            tags=tags,
        )
        row = await self.store.get_row_by_id(owner_id, entry_id)
        if row is None:
            raise NotFoundError()
        return await self._update(row, fields)

    async def _insert(self, owner_id: int, day: date, fields: _EntryFields) -> Entry:
        row = JournalEntry(
            owner_id=owner_id,
            day=day,
            created_at=_utcnow(),
            updated_at=None,
            is_locked=False,
            lock_secret_hash=None,
        )
        fields.apply(row)
        row = await self.store.upsert(row)
        logger.info("[ENTRY] Created owner=%s day=%s entry_id=%s", owner_id, day, row.id)
        await notify(self.notifier, ENTRY_CREATED, owner_id=owner_id, entry_id=row.id, day=day)
        return present(row)

    async def _update(self, row: JournalEntry, fields: _EntryFields) -> Entry:
        # 锁状态与口令不随内容更新而改变
        fields.apply(row)
        row.updated_at = _utcnow()
        row = await self.store.upsert(row)
        logger.info("[ENTRY] Updated owner=%s day=%s entry_id=%s", row.owner_id, row.day, row.id)
        await notify(
            self.notifier,
            ENTRY_UPDATED,
            owner_id=row.owner_id,
            entry_id=row.id,
            day=row.day,
        )
        return present(row)

    async def delete_entry(self, owner_id: int, entry_id: int) -> bool:
        """按 id 删除；不存在时静默返回 False。"""
        row = await self.store.delete(owner_id, entry_id)
        return await self._after_delete(row)

    async def delete_by_day(self, owner_id: int, day: date) -> bool:
        row = await self.store.delete_by_day(owner_id, day)
        return await self._after_delete(row)

    async def _after_delete(self, row: JournalEntry | None) -> bool:
        if row is None:
            return False
        logger.info("[ENTRY] Deleted owner=%s day=%s entry_id=%s", row.owner_id, row.day, row.id)
        await notify(
            self.notifier,
            ENTRY_DELETED,
            owner_id=row.owner_id,
            entry_id=row.id,
            day=row.day,
        )
        return True

    async def get_by_day(self, owner_id: int, day: date) -> Entry | None:
        return await self.store.find_by_day(owner_id, day)

    async def get_by_id(self, owner_id: int, entry_id: int) -> Entry | None:
        return await self.store.find_by_id(owner_id, entry_id)

    async def list_entries(self, owner_id: int, descending: bool = True) -> list[Entry]:
        return await self.store.list_by_owner(owner_id, descending=descending)

    async def list_range(self, owner_id: int, start: date | None, end: date | None) -> list[Entry]:
        return await self.store.list_range(owner_id, start, end)

    async def entry_days(self, owner_id: int) -> list[date]:
        return await self.store.list_days(owner_id)

    async def page(self, owner_id: int, page_index: int = 0, page_size: int = 10) -> SearchPage:
        """不带过滤条件的最近条目分页。"""
        return await search_entries(
            self.db,
            owner_id,
            page_index=page_index,
            page_size=page_size,
        )
