from typing import Literal

from pydantic import BaseModel

Role = Literal["maker", "checker", "admin"]


class UserCreateRequest(BaseModel):
    name: str
    email: str
    role: Literal["maker", "checker"]


class UserResponse(BaseModel):
    userId: str
    name: str
    email: str
    role: Role


class UserListResponse(BaseModel):
    users: list[UserResponse]


class UserDeleteResponse(BaseModel):
    ok: bool = True
    userId: str


class TokenRequest(BaseModel):
    email: str


class TokenResponse(BaseModel):
    accessToken: str
    tokenType: str = "bearer"
    user: UserResponse
