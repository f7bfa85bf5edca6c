"""条目搜索：关键字 / 日期区间 / 心情 / 标签 过滤 + 分页。"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import func, literal, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..models import JournalEntry
from ..schemas import Entry
from ..utils.errors import ensure_owner
from ..utils.normalize import VALUE_DELIMITER, normalize_filter_values
from .entry_store import storage_guard
from .redaction import redact_on_read

logger = logging.getLogger(__name__)

_LIKE_ESCAPE = "\\"


@dataclass
class SearchPage:
    items: list[Entry] = field(default_factory=list)
    total: int = 0
    page_index: int = 0
    page_size: int = 10
    took_ms: int = 0

    @property
    def has_more(self) -> bool:
        return (self.page_index * self.page_size + len(self.items)) < self.total


def _escape_like_term(value: str) -> str:
    """转义 LIKE 模式中的特殊字符，避免用户输入意外触发通配或转义。"""
    if not value:
        return ""
    return (
        value.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2)
        .replace("%", _LIKE_ESCAPE + "%")
        .replace("_", _LIKE_ESCAPE + "_")
    )


def clamp_page(page_index: int | None, page_size: int | None) -> tuple[int, int]:
    """page_index < 0 → 0；page_size <= 0 → 默认值；并限制最大页大小。"""
    try:
        idx = int(page_index or 0)
    except (TypeError, ValueError):
        idx = 0
    try:
        size = int(page_size or 0)
    except (TypeError, ValueError):
        size = 0

    if idx < 0:
        idx = 0
    if size <= 0:
        size = settings.default_page_size
    if size > settings.max_page_size:
        size = settings.max_page_size
    return idx, size


def _use_ilike(db: AsyncSession) -> bool:
    # PostgreSQL：优先用 ILIKE，避免 lower(col) 包一层函数导致索引无法命中
    bind = db.get_bind()
    dialect = str(getattr(getattr(bind, "dialect", None), "name", "") or "").lower()
    return dialect.startswith("postgresql")


def _text_clause(query: str, *, use_ilike: bool):
    pattern = f"%{_escape_like_term(query.lower())}%"
    title_expr = func.coalesce(JournalEntry.title, "")
    content_expr = func.coalesce(JournalEntry.content, "")
    if use_ilike:
        return or_(
            title_expr.ilike(pattern, escape=_LIKE_ESCAPE),
            content_expr.ilike(pattern, escape=_LIKE_ESCAPE),
        )
    return or_(
        func.lower(title_expr).like(pattern, escape=_LIKE_ESCAPE),
        func.lower(content_expr).like(pattern, escape=_LIKE_ESCAPE),
    )


def _delimited_contains(column, value: str):
    """多值文本字段的精确成员匹配。

    存储值两侧补分隔符后再匹配 `%,value,%`，避免 "Sad" 命中 "Sadness"。
    """
    padded = literal(VALUE_DELIMITER) + func.lower(func.coalesce(column, "")) + literal(VALUE_DELIMITER)
    needle = f"%{VALUE_DELIMITER}{_escape_like_term(value.lower())}{VALUE_DELIMITER}%"
    return padded.like(needle, escape=_LIKE_ESCAPE)


def _mood_clause(moods: list[str]):
    lowered = [m.lower() for m in moods]
    clauses = [func.lower(func.coalesce(JournalEntry.primary_mood, "")).in_(lowered)]
    clauses.extend(_delimited_contains(JournalEntry.secondary_moods_text, m) for m in moods)
    return or_(*clauses)


def _tag_clause(tags: list[str]):
    return or_(*[_delimited_contains(JournalEntry.tags_text, t) for t in tags])


def build_filters(
    owner_id: int,
    *,
    query: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    moods: Iterable[str] | None = None,
    tags: Iterable[str] | None = None,
    use_ilike: bool = False,
) -> list:
    """把各过滤条件拼成 WHERE 子句列表（AND 组合）。"""
    where_clauses = [JournalEntry.owner_id == owner_id]

    q_text = (query or "").strip()
    if q_text:
        where_clauses.append(_text_clause(q_text, use_ilike=use_ilike))

    if date_from is not None:
        where_clauses.append(JournalEntry.day >= date_from)
    if date_to is not None:
        where_clauses.append(JournalEntry.day < date_to)

    mood_set = normalize_filter_values(moods)
    if mood_set:
        where_clauses.append(_mood_clause(mood_set))

    tag_set = normalize_filter_values(tags)
    if tag_set:
        where_clauses.append(_tag_clause(tag_set))

    return where_clauses


@redact_on_read
async def _fetch_page(
    db: AsyncSession,
    where_clauses: list,
    *,
    offset: int,
    limit: int,
):
    count_query = select(func.count()).select_from(JournalEntry).where(*where_clauses)
    items_query = (
        select(JournalEntry)
        .where(*where_clauses)
        .order_by(JournalEntry.created_at.desc(), JournalEntry.id.desc())
        .offset(offset)
        .limit(limit)
    )
    async with storage_guard(db, "search"):
        total = int((await db.scalar(count_query)) or 0)
        rows = await db.scalars(items_query)
        return list(rows.all()), total


async def search_entries(
    db: AsyncSession,
    owner_id: int,
    *,
    query: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    moods: Iterable[str] | None = None,
    tags: Iterable[str] | None = None,
    page_index: int = 0,
    page_size: int = 10,
) -> SearchPage:
    """条目查询（支持搜索/筛选/分页）。

    - query：标题或正文的大小写不敏感子串匹配；
    - date_from <= day < date_to；
    - moods：主心情或任一次要心情属于集合（任一命中）；
    - tags：与集合有交集（任一命中）；
    - 按创建时间倒序分页，total 为分页前的命中数。
    """
    started = time.perf_counter()
    owner_id = ensure_owner(owner_id)
    page_index, page_size = clamp_page(page_index, page_size)

    where_clauses = build_filters(
        owner_id,
        query=query,
        date_from=date_from,
        date_to=date_to,
        moods=moods,
        tags=tags,
        use_ilike=_use_ilike(db),
    )

    items, total = await _fetch_page(
        db,
        where_clauses,
        offset=page_index * page_size,
        limit=page_size,
    )
    took_ms = int((time.perf_counter() - started) * 1000)
    logger.debug(
        "[SEARCH] owner=%s total=%s page=%s/%s took_ms=%s",
        owner_id,
        total,
        page_index,
        page_size,
        took_ms,
    )
    return SearchPage(
        items=items,
        total=total,
        page_index=page_index,
        page_size=page_size,
        took_ms=took_ms,
    )
