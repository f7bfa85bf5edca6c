"""统计数据 API（仪表盘用）。"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import get_db
from ..schemas import (
    StatsOverviewResponse,
    StreakResponse,
    WordCountTrendItem,
    WordCountTrendsResponse,
)
from ..services import analytics
from .deps import require_owner

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("/moods", response_model=dict[str, int])
async def mood_stats(
    owner_id: int = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    """心情频次（主心情 + 次要心情），按次数倒序。"""
    return await analytics.mood_frequencies(db, owner_id)


@router.get("/tags", response_model=dict[str, int])
async def tag_stats(
    owner_id: int = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    return await analytics.tag_frequencies(db, owner_id)


@router.get("/word-counts", response_model=WordCountTrendsResponse)
async def word_count_trends(
    months_back: int | None = Query(None, ge=0, le=120, description="回看月数；默认取配置"),
    owner_id: int = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    months = settings.word_trend_months if months_back is None else months_back
    trends = await analytics.word_count_trends(db, owner_id, months)
    return WordCountTrendsResponse(
        months_back=months,
        items=[WordCountTrendItem(month=month, word_count=count) for month, count in trends.items()],
    )


@router.get("/streak", response_model=StreakResponse)
async def streak(
    lookback_days: int | None = Query(None, ge=0, le=3660, description="回看天数；默认取配置"),
    owner_id: int = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    lookback = settings.streak_lookback_days if lookback_days is None else lookback_days
    today = analytics.journal_today()
    info = await analytics.streak_info(db, owner_id, lookback, today=today)
    return StreakResponse(**info.model_dump(), lookback_days=lookback, today=today)


@router.get("/overview", response_model=StatsOverviewResponse)
async def overview(
    owner_id: int = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    return await analytics.stats_overview(db, owner_id)
