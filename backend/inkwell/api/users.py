"""User API：注册 / 登录 / 登出 / 当前用户 / 修改密码。"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import get_db
from ..models import User
from ..schemas import (
    LoginResponse,
    PasswordChangeRequest,
    UserLoginRequest,
    UserPinLoginRequest,
    UserRegisterRequest,
    UserResponse,
)
from ..services import auth
from ..utils.errors import NotFoundError
from ..utils.session_token import issue_token
from .deps import require_owner, resolve_cookie_secure

router = APIRouter(prefix="/users", tags=["users"])
logger = logging.getLogger(__name__)


def _login_response(user: User, request: Request, response: Response) -> LoginResponse:
    token = issue_token(
        secret=settings.session_secret or "",
        user_id=user.id,
        days=settings.session_days,
    )

    max_age = int(settings.session_days) * 24 * 60 * 60
    expires = datetime.now(timezone.utc) + timedelta(seconds=max_age)
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=max_age,
        expires=expires,
        httponly=True,
        samesite=settings.session_cookie_samesite,
        secure=resolve_cookie_secure(request),
        path="/",
    )
    request.state.owner_id = user.id
    return LoginResponse(token=token, user=UserResponse.model_validate(user))


@router.post("/register", response_model=UserResponse, status_code=201)
async def register(body: UserRegisterRequest, db: AsyncSession = Depends(get_db)):
    user = await auth.register_user(db, body.username, body.password, body.pin)
    return UserResponse.model_validate(user)


@router.post("/login", response_model=LoginResponse)
async def login(
    body: UserLoginRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    user = await auth.authenticate(db, body.username, body.password)
    logger.info("[AUTH] Login user_id=%s method=password", user.id)
    return _login_response(user, request, response)


@router.post("/login/pin", response_model=LoginResponse)
async def login_with_pin(
    body: UserPinLoginRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    user = await auth.authenticate_pin(db, body.username, body.pin)
    logger.info("[AUTH] Login user_id=%s method=pin", user.id)
    return _login_response(user, request, response)


@router.post("/logout", status_code=204)
async def logout() -> Response:
    # token 为无状态签名，登出只清除 Cookie
    response = Response(status_code=204)
    response.delete_cookie(key=settings.session_cookie_name, path="/")
    return response


@router.get("/me", response_model=UserResponse)
async def me(
    owner_id: int = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    user = await auth.get_user(db, owner_id)
    if user is None:
        raise NotFoundError("User not found")
    return UserResponse.model_validate(user)


@router.post("/me/password", status_code=204)
async def change_password(
    body: PasswordChangeRequest,
    owner_id: int = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
) -> Response:
    await auth.change_password(db, owner_id, body.current_password, body.new_password)
    return Response(status_code=204)
