from datetime import date

from pydantic import BaseModel, Field


class StreakInfo(BaseModel):
    """连续写作统计（派生数据，不落库）。"""

    current_streak: int = 0
    longest_streak: int = 0
    # 回看窗口内缺失的日期（升序）
    missed_dates: list[date] = Field(default_factory=list)


class StreakResponse(StreakInfo):
    lookback_days: int
    today: date


class WordCountTrendItem(BaseModel):
    month: date
    word_count: int


class WordCountTrendsResponse(BaseModel):
    months_back: int
    items: list[WordCountTrendItem] = Field(default_factory=list)


class StatsOverviewResponse(BaseModel):
    """统计概览：一次请求拿到条目数、首末日期、连续天数与最常见心情/标签。"""

    total_entries: int = 0
    first_day: date | None = None
    last_day: date | None = None
    current_streak: int = 0
    longest_streak: int = 0
    top_mood: str | None = None
    top_tag: str | None = None
