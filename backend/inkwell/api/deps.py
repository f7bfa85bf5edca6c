"""路由公共依赖：当前登录用户、变更广播器、Cookie 参数。"""

from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import get_db
from ..services.auth import get_user
from ..services.events import ChangeNotifier
from ..utils.errors import UnauthorizedError
from ..utils.session_token import verify_token


def get_notifier(request: Request) -> ChangeNotifier | None:
    # 每个 app 在创建时挂自己的 notifier；没挂就不广播
    return getattr(request.app.state, "notifier", None)


def _extract_token(request: Request) -> str | None:
    auth = (request.headers.get("authorization") or "").strip()
    if auth[:7].lower() == "bearer ":
        token = auth[7:].strip()
        if token:
            return token
    return request.cookies.get(settings.session_cookie_name)


async def require_owner(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> int:
    """校验登录 token（Bearer 或 Cookie），返回当前用户 id。"""
    ok, reason, payload = verify_token(
        _extract_token(request),
        secret=settings.session_secret or "",
    )
    if not ok:
        raise UnauthorizedError("AUTH_REQUIRED" if reason == "missing" else "INVALID_TOKEN")

    user_id = int(payload["uid"])
    if await get_user(db, user_id) is None:
        # token 有效但用户已被删除
        raise UnauthorizedError("INVALID_TOKEN")

    request.state.owner_id = user_id
    return user_id


def is_https(request: Request) -> bool:
    if (request.url.scheme or "").lower() == "https":
        return True

    xf_proto = request.headers.get("x-forwarded-proto")
    if xf_proto:
        first = xf_proto.split(",")[0].strip().lower()
        if first == "https":
            return True
    return False


def resolve_cookie_secure(request: Request) -> bool:
    return bool(settings.session_cookie_secure) or is_https(request)
