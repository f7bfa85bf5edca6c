"""锁定条目的读取脱敏。

所有对外读取（按天 / 按 id / 列表 / 搜索 / 导出区间）都经过 `redact_on_read`，
ORM 行在这里统一转换为 `Entry` 并替换锁定条目的正文。数据库中的正文不会被修改。
"""

from __future__ import annotations

import functools
from typing import Any

from ..models import JournalEntry
from ..schemas import Entry

LOCKED_CONTENT_PLACEHOLDER = "[This entry is locked. Please unlock to view content.]"


def to_entry(row: JournalEntry) -> Entry:
    """ORM 行 → 对外模型（不做脱敏，仅供解锁成功等场景使用）。"""
    return Entry.model_validate(row)


def redact(entry: Entry) -> Entry:
    if not entry.is_locked:
        return entry
    return entry.model_copy(update={"content": LOCKED_CONTENT_PLACEHOLDER})


def present(row: JournalEntry | Entry) -> Entry:
    if isinstance(row, JournalEntry):
        row = to_entry(row)
    return redact(row)


def _present_result(result: Any) -> Any:
    if result is None:
        return None
    if isinstance(result, (JournalEntry, Entry)):
        return present(result)
    if isinstance(result, list):
        return [_present_result(item) for item in result]
    if isinstance(result, tuple):
        return tuple(_present_result(item) for item in result)
    return result


def redact_on_read(func):
    """装饰读取协程：返回值中的每个条目都转换为 Entry 并脱敏。"""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        return _present_result(await func(*args, **kwargs))

    return wrapper
