from __future__ import annotations

import logging
import secrets
from pathlib import Path

from dotenv import load_dotenv
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_APP_DIR = Path(__file__).resolve().parent
_BACKEND_DIR = _APP_DIR.parent
_REPO_ROOT = _BACKEND_DIR.parent

logger = logging.getLogger(__name__)


def _load_root_dotenv() -> None:
    """
    统一从仓库根目录读取 `.env`（并保证其优先级最高）。

    说明：
    - 启动脚本通常会 `cd backend`，导致工具默认只会找子目录下的 `.env`。
    - 先加载 `backend/.env`，再加载根目录 `.env`，并且 `override=True`，确保根目录优先。
    """

    backend_env = _BACKEND_DIR / ".env"
    root_env = _REPO_ROOT / ".env"

    for env_file in (backend_env, root_env):
        if env_file.exists():
            load_dotenv(env_file, override=True, encoding="utf-8")


class Settings(BaseSettings):
    """Application settings"""

    # Server（供 run.py 使用）
    backend_host: str = "0.0.0.0"
    backend_port: int = 31012
    backend_reload: bool = True

    # Database
    # 优先使用 DATABASE_URL；不配置时再使用 SQLITE_DB_PATH 生成 sqlite URL
    database_url: str | None = None
    sqlite_db_path: str = "inkwell.db"

    # API
    api_prefix: str = "/api"
    debug: bool = True
    # 是否输出 SQLAlchemy 的 SQL 日志；排查 SQL/事务时再临时打开
    sql_echo: bool = False

    # CORS（逗号分隔；"*" 表示允许所有来源，此时强制关闭 allow_credentials）
    cors_allow_origins: str = "*"
    cors_allow_credentials: bool = False
    cors_allow_methods: str = "*"
    cors_allow_headers: str = "*"

    # 登录会话（HMAC 签名 token）
    # - 未配置 SESSION_SECRET 时每次启动随机生成，重启后需要重新登录
    session_secret: str | None = None
    session_days: int = 30
    session_cookie_name: str = "inkwell_session"
    session_cookie_samesite: str = "lax"  # lax | strict | none
    session_cookie_secure: bool = False

    # 口令 hash（用户密码 / PIN / 条目锁）
    pbkdf2_iterations: int = 210_000

    # Journal
    default_page_size: int = 10
    max_page_size: int = 200
    streak_lookback_days: int = 30
    word_trend_months: int = 12
    # 计算“今天”所用时区（IANA 名称，如 Asia/Shanghai）；留空则使用服务器本地时区
    journal_timezone: str | None = None

    # Access Log（本地访问日志，按天落盘：<repo>/logs/YYYY-MM-DD.logs）
    access_log_enabled: bool = True
    access_log_dir: str = "logs"
    access_log_ignore_paths: str = "/health"
    # 是否记录 querystring（默认关闭，搜索词属于日记内容的一部分）
    access_log_include_query: bool = False

    @model_validator(mode="after")
    def _build_database_url_if_missing(self) -> "Settings":
        if self.database_url and self.database_url.strip():
            return self

        db_path = Path(self.sqlite_db_path)
        if not db_path.is_absolute():
            db_path = (_REPO_ROOT / db_path).resolve()

        self.database_url = f"sqlite+aiosqlite:///{db_path.as_posix()}"
        return self

    @model_validator(mode="after")
    def _normalize_journal(self) -> "Settings":
        if int(self.default_page_size or 0) <= 0:
            self.default_page_size = 10
        if int(self.max_page_size or 0) < self.default_page_size:
            self.max_page_size = max(200, self.default_page_size)
        if int(self.streak_lookback_days or 0) <= 0:
            self.streak_lookback_days = 30
        if int(self.word_trend_months or 0) <= 0:
            self.word_trend_months = 12
        if int(self.pbkdf2_iterations or 0) <= 0:
            self.pbkdf2_iterations = 210_000

        tz = (self.journal_timezone or "").strip()
        self.journal_timezone = tz or None
        return self

    @model_validator(mode="after")
    def _normalize_session(self) -> "Settings":
        secret = (self.session_secret or "").strip()
        if not secret:
            logger.warning(
                "[CONFIG] SESSION_SECRET not configured, using a random per-process secret"
            )
            secret = secrets.token_urlsafe(32)
        self.session_secret = secret

        if int(self.session_days or 0) <= 0:
            self.session_days = 30

        if not (self.session_cookie_name or "").strip():
            self.session_cookie_name = "inkwell_session"

        samesite = (self.session_cookie_samesite or "lax").strip().lower()
        if samesite not in {"lax", "strict", "none"}:
            samesite = "lax"
        self.session_cookie_samesite = samesite
        return self

    model_config = SettingsConfigDict(
        case_sensitive=False
    )


_load_root_dotenv()
settings = Settings()
