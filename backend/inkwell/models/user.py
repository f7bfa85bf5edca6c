from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.sql import func
from ..database import Base


class User(Base):
    """用户表 - 日记的所有者（登录口令 / 可选 PIN）"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, nullable=False, index=True)
    password_hash = Column(Text, nullable=False)
    pin_hash = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def has_pin(self) -> bool:
        return bool(self.pin_hash)
