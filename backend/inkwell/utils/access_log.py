"""HTTP 访问日志。

每个请求写一行 logfmt，按本地日期落到 `<access_log_dir>/YYYY-MM-DD.logs`。
只记录请求元信息和 owner id，日记标题、正文、锁定口令都不会进日志。
"""

from __future__ import annotations

import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Any

from starlette.concurrency import run_in_threadpool
from starlette.requests import Request

from .. import config as config_module
from ..config import settings

_MAX_VALUE_LEN = 800
_QUOTE_TRIGGERS = ('"', "=", "\\")
_CONTROL_ESCAPES = str.maketrans({"\r": "\\r", "\n": "\\n", "\t": "\\t"})

_file_lock = threading.Lock()


def _render(value: Any) -> str | None:
    """单个字段值的 logfmt 形式；返回 None 表示该字段不输出。"""
    if value is None:
        return None
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)

    text = str(value).translate(_CONTROL_ESCAPES)
    if not text:
        return None
    if len(text) > _MAX_VALUE_LEN:
        text = text[:_MAX_VALUE_LEN] + "…"
    if any(ch.isspace() or ch in _QUOTE_TRIGGERS for ch in text):
        return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'
    return text


def to_logfmt(fields: list[tuple[str, Any]]) -> str:
    rendered = ((key, _render(value)) for key, value in fields)
    return " ".join(f"{key}={text}" for key, text in rendered if text is not None)


def _log_file_for(day: datetime) -> Path:
    base = Path(settings.access_log_dir)
    if not base.is_absolute():
        base = (config_module._REPO_ROOT / base).resolve()
    return base / f"{day:%Y-%m-%d}.logs"


def _write(line: str, now: datetime) -> Path:
    path = _log_file_for(now)
    path.parent.mkdir(parents=True, exist_ok=True)
    # 只保证同进程内各行不交错
    with _file_lock, path.open("a", encoding="utf-8", newline="\n") as fh:
        fh.write(line.rstrip("\n") + "\n")
    return path


async def append_line(line: str, *, now: datetime | None = None) -> Path:
    """追加一行到当天的日志文件，返回写入的路径。"""
    return await run_in_threadpool(_write, line, now or datetime.now().astimezone())


def _is_ignored(path: str) -> bool:
    ignored = {p.strip() for p in (settings.access_log_ignore_paths or "").split(",")}
    ignored.discard("")
    return path in ignored


async def log_http_request(
    request: Request,
    *,
    status_code: int,
    duration_ms: int,
    error: str | None = None,
    request_id: str | None = None,
) -> None:
    if not settings.access_log_enabled or _is_ignored(request.url.path):
        return

    now = datetime.now().astimezone()
    # require_owner 认证通过后才会写入 owner_id
    owner_id = getattr(request.state, "owner_id", None)
    fields: list[tuple[str, Any]] = [
        ("ts", now.isoformat(timespec="seconds")),
        ("kind", "http"),
        ("rid", request_id),
        ("method", request.method),
        ("path", request.url.path),
        ("query", request.url.query if settings.access_log_include_query else None),
        ("status", status_code),
        ("dur_ms", duration_ms),
        ("owner", owner_id),
        ("ip", request.client.host if request.client else None),
        ("ua", request.headers.get("user-agent")),
        ("error", error),
    ]
    await append_line(to_logfmt(fields), now=now)


class AccessLogTimer:
    """请求耗时（毫秒）。"""

    def __init__(self) -> None:
        self._started_ns = time.perf_counter_ns()

    def elapsed_ms(self) -> int:
        return (time.perf_counter_ns() - self._started_ns) // 1_000_000
