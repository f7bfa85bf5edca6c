"""用户注册 / 登录（密码或 PIN）/ 修改密码。"""

from __future__ import annotations

import logging
import re

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from ..models import User
from ..utils.errors import (
    ConflictError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
    ensure_owner,
)
from ..utils.secret_hash import hash_secret, verify_secret
from .entry_store import storage_guard

logger = logging.getLogger(__name__)

MIN_USERNAME_LENGTH = 3
MAX_USERNAME_LENGTH = 50
MIN_PASSWORD_LENGTH = 6
_PIN_RE = re.compile(r"^\d{4,8}$")


def _normalize_username(username: str | None) -> str:
    return (username or "").strip()


def _validate_password(password: str | None) -> str:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return password


def _validate_pin(pin: str | None) -> str | None:
    if pin is None:
        return None
    pin = pin.strip()
    if not pin:
        return None
    if not _PIN_RE.match(pin):
        raise ValidationError("PIN must be 4-8 digits")
    return pin


async def get_user(db: AsyncSession, user_id: int) -> User | None:
    async with storage_guard(db, "get_user"):
        return await db.scalar(select(User).where(User.id == user_id))


async def _get_user_by_username(db: AsyncSession, username: str) -> User | None:
    async with storage_guard(db, "get_user_by_username"):
        return await db.scalar(select(User).where(User.username == username))


async def register_user(
    db: AsyncSession,
    username: str,
    password: str,
    pin: str | None = None,
) -> User:
    """注册新用户；用户名重复时抛出 ConflictError。"""
    name = _normalize_username(username)
    if not (MIN_USERNAME_LENGTH <= len(name) <= MAX_USERNAME_LENGTH):
        raise ValidationError(
            f"Username must be {MIN_USERNAME_LENGTH}-{MAX_USERNAME_LENGTH} characters"
        )
    password = _validate_password(password)
    pin = _validate_pin(pin)

    if await _get_user_by_username(db, name) is not None:
        raise ConflictError("Username already exists")

    user = User(
        username=name,
        password_hash=await run_in_threadpool(hash_secret, password),
        pin_hash=await run_in_threadpool(hash_secret, pin) if pin else None,
    )
    async with storage_guard(db, "register_user"):
        db.add(user)
        try:
            await db.commit()
        except IntegrityError as e:
            # 并发注册同名用户：以数据库唯一约束为准
            await db.rollback()
            raise ConflictError("Username already exists") from e
        await db.refresh(user)

    logger.info("[AUTH] Registered user_id=%s", user.id)
    return user


async def authenticate(db: AsyncSession, username: str, password: str) -> User:
    user = await _get_user_by_username(db, _normalize_username(username))
    if user is None or not await run_in_threadpool(verify_secret, password or "", user.password_hash):
        raise UnauthorizedError("INVALID_CREDENTIALS")
    return user


async def authenticate_pin(db: AsyncSession, username: str, pin: str) -> User:
    user = await _get_user_by_username(db, _normalize_username(username))
    if user is None or not user.pin_hash:
        raise UnauthorizedError("INVALID_CREDENTIALS")
    if not await run_in_threadpool(verify_secret, (pin or "").strip(), user.pin_hash):
        raise UnauthorizedError("INVALID_CREDENTIALS")
    return user


async def change_password(
    db: AsyncSession,
    user_id: int,
    current_password: str,
    new_password: str,
) -> None:
    user_id = ensure_owner(user_id)
    user = await get_user(db, user_id)
    if user is None:
        raise NotFoundError("User not found")
    if not await run_in_threadpool(verify_secret, current_password or "", user.password_hash):
        raise UnauthorizedError("INVALID_CREDENTIALS")

    new_password = _validate_password(new_password)
    user.password_hash = await run_in_threadpool(hash_secret, new_password)
    async with storage_guard(db, "change_password"):
        await db.commit()
    logger.info("[AUTH] Password changed user_id=%s", user_id)
