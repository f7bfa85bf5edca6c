"""条目存储：按 (owner_id, day) 唯一的持久化映射。"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, cast

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import JournalEntry
from ..utils.errors import ConflictError, StorageError, ensure_owner, exception_summary
from .redaction import redact_on_read

logger = logging.getLogger(__name__)

_OWNER_DAY_CONSTRAINT = "uq_journal_entries_owner_day"


def _is_owner_day_violation(exc: IntegrityError) -> bool:
    # PostgreSQL 报约束名；SQLite 报列名：UNIQUE constraint failed: journal_entries.owner_id, journal_entries.day
    msg = str(getattr(exc, "orig", None) or exc)
    if _OWNER_DAY_CONSTRAINT in msg:
        return True
    return "journal_entries.owner_id" in msg and "journal_entries.day" in msg


@asynccontextmanager
async def storage_guard(db: AsyncSession, action: str):
    """把数据库异常归类为业务异常，并回滚当前会话（不影响其他请求）。"""
    try:
        yield
    except IntegrityError as e:
        await db.rollback()
        if _is_owner_day_violation(e):
            logger.info("[ENTRY] Owner/day conflict during %s", action)
            raise ConflictError() from e
        logger.warning("[ENTRY] Integrity error during %s: %s", action, exception_summary(e))
        raise StorageError() from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("[ENTRY] Storage failure during %s", action)
        raise StorageError() from e


def _rowcount(result: Any) -> int:
    return int(getattr(cast(Any, result), "rowcount", 0) or 0)


class EntryStore:
    """条目的读写入口。

    - 对外读取方法（find_* / list_*）统一经过 `redact_on_read`；
    - get_row_* 返回未脱敏的 ORM 行，只给生命周期管理和加锁/解锁使用；
    - 所有写操作在返回前已提交。
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_row_by_day(self, owner_id: int, day: date) -> JournalEntry | None:
        owner_id = ensure_owner(owner_id)
        async with storage_guard(self.db, "get_row_by_day"):
            return await self.db.scalar(
                select(JournalEntry).where(
                    JournalEntry.owner_id == owner_id,
                    JournalEntry.day == day,
                )
            )

    async def get_row_by_id(self, owner_id: int, entry_id: int) -> JournalEntry | None:
        owner_id = ensure_owner(owner_id)
        async with storage_guard(self.db, "get_row_by_id"):
            return await self.db.scalar(
                select(JournalEntry).where(
                    JournalEntry.owner_id == owner_id,
                    JournalEntry.id == entry_id,
                )
            )

    @redact_on_read
    async def find_by_day(self, owner_id: int, day: date):
        return await self.get_row_by_day(owner_id, day)

    @redact_on_read
    async def find_by_id(self, owner_id: int, entry_id: int):
        return await self.get_row_by_id(owner_id, entry_id)

    @redact_on_read
    async def list_by_owner(self, owner_id: int, descending: bool = True):
        owner_id = ensure_owner(owner_id)
        order = JournalEntry.day.desc() if descending else JournalEntry.day.asc()
        async with storage_guard(self.db, "list_by_owner"):
            rows = await self.db.scalars(
                select(JournalEntry).where(JournalEntry.owner_id == owner_id).order_by(order)
            )
            return list(rows.all())

    @redact_on_read
    async def list_range(self, owner_id: int, start: date | None, end: date | None):
        """区间内的条目（start <= day < end），按日期升序；供文档导出使用。"""
        owner_id = ensure_owner(owner_id)
        query = select(JournalEntry).where(JournalEntry.owner_id == owner_id)
        if start is not None:
            query = query.where(JournalEntry.day >= start)
        if end is not None:
            query = query.where(JournalEntry.day < end)
        async with storage_guard(self.db, "list_range"):
            rows = await self.db.scalars(query.order_by(JournalEntry.day.asc()))
            return list(rows.all())

    async def list_days(self, owner_id: int) -> list[date]:
        """有条目的日期（去重、升序）。"""
        owner_id = ensure_owner(owner_id)
        async with storage_guard(self.db, "list_days"):
            rows = await self.db.scalars(
                select(JournalEntry.day)
                .where(JournalEntry.owner_id == owner_id)
                .distinct()
                .order_by(JournalEntry.day.asc())
            )
            return [d for d in rows.all() if d is not None]

    async def upsert(self, row: JournalEntry) -> JournalEntry:
        """写入新行或保存已修改的行。

        (owner_id, day) 唯一约束由数据库裁决：并发创建时后提交的一方收到 ConflictError。
        """
        ensure_owner(row.owner_id)
        async with storage_guard(self.db, "upsert"):
            self.db.add(row)
            await self.db.commit()
            await self.db.refresh(row)
        return row

    async def _delete_row(self, row: JournalEntry | None, action: str) -> JournalEntry | None:
        if row is None:
            return None
        async with storage_guard(self.db, action):
            await self.db.delete(row)
            await self.db.commit()
        return row

    async def delete(self, owner_id: int, entry_id: int) -> JournalEntry | None:
        """按 id 删除（限定 owner）；不存在时什么也不做。返回被删除的行。"""
        row = await self.get_row_by_id(owner_id, entry_id)
        return await self._delete_row(row, "delete")

    async def delete_by_day(self, owner_id: int, day: date) -> JournalEntry | None:
        row = await self.get_row_by_day(owner_id, day)
        return await self._delete_row(row, "delete_by_day")

    async def set_lock(self, owner_id: int, day: date, secret_hash: str) -> JournalEntry | None:
        """单条 UPDATE 完成加锁（原子、后写覆盖先写）。条目不存在返回 None。"""
        owner_id = ensure_owner(owner_id)
        async with storage_guard(self.db, "set_lock"):
            result = await self.db.execute(
                update(JournalEntry)
                .where(JournalEntry.owner_id == owner_id, JournalEntry.day == day)
                .values(is_locked=True, lock_secret_hash=secret_hash)
                .execution_options(synchronize_session=False)
            )
            if _rowcount(result) <= 0:
                await self.db.rollback()
                return None
            await self.db.commit()
        return await self._reload_by_day(owner_id, day)

    async def clear_lock(self, entry_id: int, expected_hash: str | None) -> bool:
        """解锁：仅当锁仍是校验时看到的那一把才清除（compare-and-set）。"""
        async with storage_guard(self.db, "clear_lock"):
            result = await self.db.execute(
                update(JournalEntry)
                .where(
                    JournalEntry.id == entry_id,
                    JournalEntry.is_locked.is_(True),
                    JournalEntry.lock_secret_hash == expected_hash,
                )
                .values(is_locked=False, lock_secret_hash=None)
                .execution_options(synchronize_session=False)
            )
            if _rowcount(result) <= 0:
                await self.db.rollback()
                return False
            await self.db.commit()
        return True

    async def _reload_by_day(self, owner_id: int, day: date) -> JournalEntry | None:
        async with storage_guard(self.db, "reload"):
            return await self.db.scalar(
                select(JournalEntry)
                .where(JournalEntry.owner_id == owner_id, JournalEntry.day == day)
                .execution_options(populate_existing=True)
            )

    async def reload(self, row: JournalEntry) -> JournalEntry:
        async with storage_guard(self.db, "reload"):
            await self.db.refresh(row)
        return row
