"""Journal entry API"""

from __future__ import annotations

from datetime import date, timedelta

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..schemas import (
    Entry,
    EntryCreateRequest,
    EntryLockRequest,
    EntryPageResponse,
    EntryVocabularyResponse,
    EntryWriteRequest,
)
from ..services.events import ChangeNotifier
from ..services.journal import AVAILABLE_MOODS, SUGGESTED_TAGS, JournalService
from ..services.locking import lock_entry, unlock_entry
from ..services.search import SearchPage, search_entries
from ..utils.errors import NotFoundError, ValidationError
from .deps import get_notifier, require_owner

router = APIRouter(prefix="/entries", tags=["entries"])


def _page_response(page: SearchPage) -> EntryPageResponse:
    return EntryPageResponse(
        total=page.total,
        page_index=page.page_index,
        page_size=page.page_size,
        has_more=page.has_more,
        took_ms=page.took_ms,
        items=page.items,
    )


def _write_kwargs(body: EntryWriteRequest) -> dict:
    return {
        "title": body.title,
        "content": body.content,
        "primary_mood": body.primary_mood,
        "secondary_moods": body.secondary_moods,
        "tags": body.tags,
    }


@router.get("", response_model=EntryPageResponse)
async def list_entries(
    page_index: int = Query(0, description="页码（从 0 开始）"),
    page_size: int = Query(10, description="每页条数；<=0 使用默认值"),
    owner_id: int = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    """最近条目（按创建时间倒序分页）。"""
    page = await JournalService(db).page(owner_id, page_index=page_index, page_size=page_size)
    return _page_response(page)


@router.get("/search", response_model=EntryPageResponse)
async def search(
    q: str | None = Query(None, description="标题/正文关键字（大小写不敏感）"),
    date_from: date | None = Query(None, description="起始日期（含）"),
    date_to: date | None = Query(None, description="结束日期（不含）"),
    moods: list[str] | None = Query(None, description="心情（可重复或逗号分隔，任一命中）"),
    tags: list[str] | None = Query(None, description="标签（可重复或逗号分隔，任一命中）"),
    page_index: int = Query(0),
    page_size: int = Query(10),
    owner_id: int = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    # date_to <= date_from 只是查不到结果，不视为参数错误
    page = await search_entries(
        db,
        owner_id,
        query=q,
        date_from=date_from,
        date_to=date_to,
        moods=moods,
        tags=tags,
        page_index=page_index,
        page_size=page_size,
    )
    return _page_response(page)


@router.get("/days", response_model=list[date])
async def entry_days(
    owner_id: int = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    """有条目的日期（日历高亮用）。"""
    return await JournalService(db).entry_days(owner_id)


@router.get("/range", response_model=list[Entry])
async def entries_in_range(
    start: date = Query(..., description="起始日期（含）"),
    end: date = Query(..., description="结束日期（含）"),
    owner_id: int = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    """导出用：区间内条目按日期升序（锁定条目正文已脱敏）。"""
    if start > end:
        raise ValidationError("start must not be after end")
    return await JournalService(db).list_range(owner_id, start, end + timedelta(days=1))


@router.get("/vocabulary", response_model=EntryVocabularyResponse)
async def vocabulary(owner_id: int = Depends(require_owner)):
    return EntryVocabularyResponse(moods=list(AVAILABLE_MOODS), suggested_tags=list(SUGGESTED_TAGS))


@router.get("/by-day/{day}", response_model=Entry)
async def get_entry_by_day(
    day: date,
    owner_id: int = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    entry = await JournalService(db).get_by_day(owner_id, day)
    if entry is None:
        raise NotFoundError()
    return entry


@router.put("/by-day/{day}", response_model=Entry)
async def save_entry_for_day(
    day: date,
    body: EntryWriteRequest,
    owner_id: int = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
    notifier: ChangeNotifier | None = Depends(get_notifier),
):
    """保存某天的条目：不存在则创建，存在则更新。"""
    return await JournalService(db, notifier).create_or_update(owner_id, day, **_write_kwargs(body))


@router.delete("/by-day/{day}", status_code=204)
async def delete_entry_for_day(
    day: date,
    owner_id: int = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
    notifier: ChangeNotifier | None = Depends(get_notifier),
) -> Response:
    # 删除是幂等的：条目不存在同样返回 204
    await JournalService(db, notifier).delete_by_day(owner_id, day)
    return Response(status_code=204)


@router.post("/by-day/{day}/lock", response_model=Entry)
async def lock_entry_for_day(
    day: date,
    body: EntryLockRequest,
    owner_id: int = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
    notifier: ChangeNotifier | None = Depends(get_notifier),
):
    return await lock_entry(db, owner_id, day, body.secret, notifier=notifier)


@router.post("/by-day/{day}/unlock", response_model=Entry)
async def unlock_entry_for_day(
    day: date,
    body: EntryLockRequest,
    owner_id: int = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
    notifier: ChangeNotifier | None = Depends(get_notifier),
):
    return await unlock_entry(db, owner_id, day, body.secret, notifier=notifier)


@router.post("", response_model=Entry, status_code=201)
async def create_entry(
    body: EntryCreateRequest,
    owner_id: int = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
    notifier: ChangeNotifier | None = Depends(get_notifier),
):
    """严格创建：当天已有条目返回 409。"""
    return await JournalService(db, notifier).create_entry(owner_id, body.day, **_write_kwargs(body))


@router.get("/{entry_id}", response_model=Entry)
async def get_entry(
    entry_id: int,
    owner_id: int = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    entry = await JournalService(db).get_by_id(owner_id, entry_id)
    if entry is None:
        raise NotFoundError()
    return entry


@router.put("/{entry_id}", response_model=Entry)
async def update_entry(
    entry_id: int,
    body: EntryWriteRequest,
    owner_id: int = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
    notifier: ChangeNotifier | None = Depends(get_notifier),
):
    return await JournalService(db, notifier).update_entry(owner_id, entry_id, **_write_kwargs(body))


@router.delete("/{entry_id}", status_code=204)
async def delete_entry(
    entry_id: int,
    owner_id: int = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
    notifier: ChangeNotifier | None = Depends(get_notifier),
) -> Response:
    await JournalService(db, notifier).delete_entry(owner_id, entry_id)
    return Response(status_code=204)
