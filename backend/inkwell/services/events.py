"""条目变更通知：创建/更新/删除/加锁/解锁成功后通知订阅方刷新。"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import date, datetime, timezone

logger = logging.getLogger(__name__)

ENTRY_CREATED = "created"
ENTRY_UPDATED = "updated"
ENTRY_DELETED = "deleted"
ENTRY_LOCKED = "locked"
ENTRY_UNLOCKED = "unlocked"


@dataclass(frozen=True)
class EntryChange:
    kind: str
    owner_id: int
    entry_id: int
    day: date
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


ChangeListener = Callable[[EntryChange], Awaitable[None] | None]


class ChangeNotifier:
    """进程内的变更通知器。

    - 支持任意数量的监听器（同步函数或协程函数），按注册顺序调用；
    - 单个监听器抛错只记录日志，不影响其他监听器，也不回滚已经提交的写入。
    """

    def __init__(self) -> None:
        self._listeners: list[ChangeListener] = []

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """注册监听器，返回取消订阅的函数（可重复调用）。"""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return _unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    async def publish(self, change: EntryChange) -> None:
        # 拷贝一份：监听器内部可能取消订阅
        for listener in list(self._listeners):
            try:
                result = listener(change)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "[EVENTS] Listener failed kind=%s entry_id=%s",
                    change.kind,
                    change.entry_id,
                )


async def notify(
    notifier: ChangeNotifier | None,
    kind: str,
    *,
    owner_id: int,
    entry_id: int,
    day: date,
) -> None:
    if notifier is None:
        return
    await notifier.publish(
        EntryChange(kind=kind, owner_id=owner_id, entry_id=entry_id, day=day)
    )
