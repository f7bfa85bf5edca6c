from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime


class UserResponse(BaseModel):
    """用户响应模型（不含任何口令 hash）"""

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    has_pin: bool = False
    created_at: datetime | None = None


class UserRegisterRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    pin: str | None = None


class UserLoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class UserPinLoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    pin: str = Field(..., min_length=1)


class PasswordChangeRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    """登录结果：token 同时写入 Cookie，也可作为 Bearer 使用。"""

    token: str
    user: UserResponse
