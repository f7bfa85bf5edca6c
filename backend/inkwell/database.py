from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy import event, text
from .config import settings

# 针对 SQLite 做一些“更像生产”的默认优化：
# - busy_timeout：并发写入时等待而不是直接 “database is locked”
# - WAL：读写并行（统计查询 + 保存条目）
# - foreign_keys：打开外键约束（SQLite 默认关闭）
_is_sqlite = str(settings.database_url or "").startswith("sqlite")
_connect_args = {"timeout": 30} if _is_sqlite else {}

# Create async engine (supports both SQLite and PostgreSQL)
engine = create_async_engine(
    settings.database_url,
    echo=settings.sql_echo,
    pool_pre_ping=True,
    future=True,
    connect_args=_connect_args,
)


def _unicode_lower(value):
    if isinstance(value, str):
        return value.lower()
    return value


def install_sqlite_functions(async_engine) -> None:
    """SQLite 自带的 lower() 只处理 ASCII，这里换成 Python 的 str.lower，
    保证 "Été" / "ÜBER" 这类文本能和查询词按同一规则折叠大小写。"""

    @event.listens_for(async_engine.sync_engine, "connect")
    def _register_lower(dbapi_connection, _connection_record):
        dbapi_connection.create_function("lower", 1, _unicode_lower, deterministic=True)


def install_sqlite_pragmas(async_engine) -> None:
    """为 SQLite 连接注册 PRAGMA 和自定义函数；PostgreSQL 不需要。"""
    install_sqlite_functions(async_engine)

    @event.listens_for(async_engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, _connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL;")
        cursor.execute("PRAGMA synchronous=NORMAL;")
        cursor.execute("PRAGMA foreign_keys=ON;")
        cursor.execute("PRAGMA busy_timeout=30000;")
        cursor.close()


if _is_sqlite:
    install_sqlite_pragmas(engine)

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)

# Base class for models
Base = declarative_base()


async def get_db():
    """Dependency for getting database session"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db():
    """Initialize database tables"""
    # 确保所有模型都已被导入，从而注册到 Base.metadata
    from . import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await _ensure_schema(conn)


# 旧版本安装只有 day/content/created_at 等少量列；后续版本新增的列在这里补齐。
# (列名, SQLite 类型定义, PostgreSQL 类型定义)
_JOURNAL_ENTRY_COLUMNS: list[tuple[str, str, str]] = [
    ("title", "TEXT", "VARCHAR(200)"),
    ("updated_at", "DATETIME", "TIMESTAMP WITH TIME ZONE"),
    ("primary_mood", "TEXT NOT NULL DEFAULT ''", "VARCHAR(50) NOT NULL DEFAULT ''"),
    ("secondary_moods", "TEXT NOT NULL DEFAULT ''", "TEXT NOT NULL DEFAULT ''"),
    ("tags", "TEXT NOT NULL DEFAULT ''", "TEXT NOT NULL DEFAULT ''"),
    ("owner_id", "INTEGER NOT NULL DEFAULT 1", "INTEGER NOT NULL DEFAULT 1"),
    ("is_locked", "BOOLEAN NOT NULL DEFAULT 0", "BOOLEAN NOT NULL DEFAULT FALSE"),
    ("lock_secret_hash", "TEXT", "TEXT"),
]


async def _ensure_schema(conn) -> None:
    """做一层轻量 schema 兼容，避免本地 SQLite 升级后缺列导致报错。

    说明：
    - 本项目未引入 Alembic，因此对“新增字段”采用最小成本的自修复方式。
    - PostgreSQL 使用 IF NOT EXISTS；SQLite 通过 PRAGMA table_info 判断。
    - 可重复执行。
    """
    dialect = conn.dialect.name

    if dialect == "sqlite":
        result = await conn.execute(text("PRAGMA table_info(journal_entries)"))
        cols = {row[1] for row in result.fetchall()}
        for name, sqlite_type, _pg_type in _JOURNAL_ENTRY_COLUMNS:
            if name not in cols:
                await conn.execute(
                    text(f"ALTER TABLE journal_entries ADD COLUMN {name} {sqlite_type}")
                )
    elif dialect.startswith("postgresql"):
        for name, _sqlite_type, pg_type in _JOURNAL_ENTRY_COLUMNS:
            await conn.execute(
                text(f"ALTER TABLE journal_entries ADD COLUMN IF NOT EXISTS {name} {pg_type}")
            )

    # 每个用户每天只允许一条记录：唯一索引是并发创建时的最终裁决
    await conn.execute(
        text(
            "CREATE UNIQUE INDEX IF NOT EXISTS uq_journal_entries_owner_day "
            "ON journal_entries (owner_id, day)"
        )
    )

    # 搜索默认按创建时间倒序分页
    await conn.execute(
        text(
            "CREATE INDEX IF NOT EXISTS idx_journal_entries_owner_created_at "
            "ON journal_entries (owner_id, created_at DESC)"
        )
    )
