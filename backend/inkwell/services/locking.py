"""条目加锁 / 解锁（按 owner + 日期定位）。

锁只是一道口令校验：正文本身不加密，读取时由 redaction 统一替换为占位文本。
"""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from ..schemas import Entry
from ..utils.errors import NotFoundError, ValidationError, WrongSecretError, ensure_owner
from ..utils.secret_hash import hash_secret, verify_secret
from .entry_store import EntryStore
from .events import ENTRY_LOCKED, ENTRY_UNLOCKED, ChangeNotifier, notify
from .redaction import present, to_entry

logger = logging.getLogger(__name__)


async def lock_entry(
    db: AsyncSession,
    owner_id: int,
    day: date,
    secret: str,
    *,
    notifier: ChangeNotifier | None = None,
) -> Entry:
    """加锁：保存口令的单向 hash。已锁定的条目再次加锁会替换口令。返回脱敏后的条目。"""
    owner_id = ensure_owner(owner_id)
    if not secret:
        raise ValidationError("Lock secret is required")

    # PBKDF2 比较耗 CPU，放到线程池里算，避免阻塞事件循环
    secret_hash = await run_in_threadpool(hash_secret, secret)

    store = EntryStore(db)
    row = await store.set_lock(owner_id, day, secret_hash)
    if row is None:
        raise NotFoundError()

    logger.info("[LOCK] Entry locked owner=%s day=%s entry_id=%s", owner_id, day, row.id)
    await notify(notifier, ENTRY_LOCKED, owner_id=owner_id, entry_id=row.id, day=row.day)
    return present(row)


async def unlock_entry(
    db: AsyncSession,
    owner_id: int,
    day: date,
    secret: str,
    *,
    notifier: ChangeNotifier | None = None,
) -> Entry:
    """解锁：口令正确则清除锁并返回完整条目；口令错误时条目保持锁定。"""
    owner_id = ensure_owner(owner_id)
    store = EntryStore(db)

    row = await store.get_row_by_day(owner_id, day)
    if row is None:
        raise NotFoundError()
    if not row.is_locked:
        return to_entry(row)

    expected_hash = row.lock_secret_hash
    ok = await run_in_threadpool(verify_secret, secret or "", expected_hash)
    if not ok:
        logger.info("[LOCK] Wrong unlock secret owner=%s day=%s", owner_id, day)
        raise WrongSecretError()

    if not await store.clear_lock(row.id, expected_hash):
        # 校验与更新之间被并发修改：被删除则 404，被换了口令则视为口令不匹配
        if await store.get_row_by_day(owner_id, day) is None:
            raise NotFoundError()
        raise WrongSecretError()

    row = await store.reload(row)
    logger.info("[LOCK] Entry unlocked owner=%s day=%s entry_id=%s", owner_id, day, row.id)
    await notify(notifier, ENTRY_UNLOCKED, owner_id=owner_id, entry_id=row.id, day=row.day)
    return to_entry(row)
