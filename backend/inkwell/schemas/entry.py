from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Entry(BaseModel):
    """日记条目（对外的唯一表示）。

    注意：不包含 lock_secret_hash；锁定条目的 content 在所有读取路径上都已被替换为占位文本。
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_id: int
    day: date
    title: str | None = None
    content: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None
    primary_mood: str
    secondary_moods: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    is_locked: bool = False

    @field_validator("content", "primary_mood", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        # 旧库补列后可能出现 NULL；对外统一为空字符串
        return "" if value is None else value

    @field_validator("is_locked", mode="before")
    @classmethod
    def _none_as_unlocked(cls, value):
        return bool(value)


class EntryWriteRequest(BaseModel):
    """创建/更新条目的请求体（按天 upsert、严格创建、按 id 更新共用字段）。"""

    title: str | None = None
    content: str | None = ""
    primary_mood: str = ""
    secondary_moods: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)


class EntryCreateRequest(EntryWriteRequest):
    day: date


class EntryLockRequest(BaseModel):
    secret: str = Field(..., min_length=1)


class EntryPageResponse(BaseModel):
    """分页结果：total 为分页前的命中总数。"""

    total: int = 0
    page_index: int = 0
    page_size: int = 10
    has_more: bool = False
    # 后端处理耗时（ms）
    took_ms: int = 0
    items: list[Entry] = Field(default_factory=list)


class EntryVocabularyResponse(BaseModel):
    moods: list[str] = Field(default_factory=list)
    suggested_tags: list[str] = Field(default_factory=list)
