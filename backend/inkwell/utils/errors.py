from __future__ import annotations

import re


_CONTROL_RE = re.compile(r"[\r\n\t]+")


class JournalError(Exception):
    """业务异常基类：API 层统一映射为对应的 HTTP 状态码。"""

    status_code = 500
    default_detail = "JOURNAL_ERROR"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(JournalError):
    """必填字段缺失或取值非法（例如主心情为空）。"""

    status_code = 422
    default_detail = "VALIDATION_ERROR"


class ConflictError(JournalError):
    """同一用户同一天已存在条目（唯一约束冲突）。"""

    status_code = 409
    default_detail = "An entry for this day already exists. Use update instead."


class NotFoundError(JournalError):
    status_code = 404
    default_detail = "Entry not found"


class WrongSecretError(JournalError):
    status_code = 403
    default_detail = "WRONG_SECRET"


class UnauthorizedError(JournalError):
    status_code = 401
    default_detail = "AUTH_REQUIRED"


class StorageError(JournalError):
    """数据库不可用 / 未归类的约束失败。"""

    status_code = 503
    default_detail = "STORAGE_ERROR"


def ensure_owner(owner_id: int | None) -> int:
    """所有读写操作的入口校验：没有有效的 owner 一律拒绝。"""
    if owner_id is None or isinstance(owner_id, bool):
        raise UnauthorizedError()
    try:
        value = int(owner_id)
    except (TypeError, ValueError):
        raise UnauthorizedError() from None
    if value <= 0:
        raise UnauthorizedError()
    return value


def _sanitize_text(text: str, *, max_len: int) -> str:
    """把异常文本压缩成更适合日志/落盘的短字符串（避免换行、控制字符、超长）。"""
    if max_len <= 0:
        return ""
    cleaned = _CONTROL_RE.sub(" ", text).strip()
    if len(cleaned) > max_len:
        return f"{cleaned[:max_len]}…"
    return cleaned


def exception_summary(exc: BaseException, *, max_len: int = 200) -> str:
    """生成对外更安全的异常摘要：默认仅保留异常类型 + 截断后的消息。"""
    name = type(exc).__name__
    msg = _sanitize_text(str(exc), max_len=max_len)
    return f"{name}: {msg}" if msg else name
