from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func
from ..database import Base
from ..utils.normalize import join_values, split_values


class JournalEntry(Base):
    """日记条目表 - 每个用户每天一条

    secondary_moods / tags 以逗号分隔文本落库（如 "Calm,Tired"），
    对外通过同名属性以 list[str] 读取。
    """
    __tablename__ = "journal_entries"
    __table_args__ = (
        UniqueConstraint("owner_id", "day", name="uq_journal_entries_owner_day"),
    )

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    day = Column(Date, nullable=False, index=True)
    title = Column(String(200))
    content = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    # 首次修改前保持为空
    updated_at = Column(DateTime(timezone=True))
    primary_mood = Column(String(50), nullable=False, default="")
    secondary_moods_text = Column("secondary_moods", Text, nullable=False, default="")
    tags_text = Column("tags", Text, nullable=False, default="")
    is_locked = Column(Boolean, nullable=False, default=False)
    lock_secret_hash = Column(Text)

    @property
    def secondary_moods(self) -> list[str]:
        return split_values(self.secondary_moods_text)

    @secondary_moods.setter
    def secondary_moods(self, values: list[str]) -> None:
        self.secondary_moods_text = join_values(values)

    @property
    def tags(self) -> list[str]:
        return split_values(self.tags_text)

    @tags.setter
    def tags(self, values: list[str]) -> None:
        self.tags_text = join_values(values)
