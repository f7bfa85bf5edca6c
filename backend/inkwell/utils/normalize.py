"""条目字段的归一化（心情 / 标签 / 标题 / 正文）。"""

from __future__ import annotations

from collections.abc import Iterable

# 多值字段落库时的分隔符；单个值内部不允许出现
VALUE_DELIMITER = ","

MAX_SECONDARY_MOODS = 2
MAX_TITLE_LENGTH = 200


def split_values(raw: str | None) -> list[str]:
    """把落库的逗号分隔文本还原为列表（去空白、去空值）。"""
    if not raw:
        return []
    return [p.strip() for p in raw.split(VALUE_DELIMITER) if p and p.strip()]


def join_values(values: Iterable[str] | None) -> str:
    if not values:
        return ""
    return VALUE_DELIMITER.join(v for v in values if v)


def _flatten(values: Iterable[str] | str | None) -> list[str]:
    # 输入里自带逗号的值按分隔符拆开，保证落库后仍能无歧义地还原
    if values is None:
        return []
    if isinstance(values, str):
        values = [values]
    out: list[str] = []
    for raw in values:
        if raw is None:
            continue
        out.extend(split_values(str(raw)))
    return out


def dedupe_casefold(values: Iterable[str]) -> list[str]:
    """大小写不敏感去重，保留首次出现的写法与顺序。"""
    out: list[str] = []
    seen: set[str] = set()
    for v in values:
        key = v.casefold()
        if key in seen:
            continue
        seen.add(key)
        out.append(v)
    return out


def normalize_mood(value: str | None) -> str:
    return (value or "").strip()


def normalize_secondary_moods(
    values: Iterable[str] | str | None,
    primary_mood: str,
) -> list[str]:
    """次要心情：去空白 → 去空值 → 去掉与主心情相同的值 → 去重 → 最多 2 个。"""
    primary_key = normalize_mood(primary_mood).casefold()
    candidates = [v for v in _flatten(values) if v.casefold() != primary_key]
    return dedupe_casefold(candidates)[:MAX_SECONDARY_MOODS]


def normalize_tags(values: Iterable[str] | str | None) -> list[str]:
    return dedupe_casefold(_flatten(values))


def normalize_filter_values(values: Iterable[str] | str | None) -> list[str]:
    """搜索过滤集合：与落库规则一致的拆分/去重，便于按分隔符精确匹配。"""
    return dedupe_casefold(_flatten(values))


def normalize_title(value: str | None) -> str | None:
    title = (value or "").strip()
    return title or None


def normalize_content(value: str | None) -> str:
    return (value or "").strip()
