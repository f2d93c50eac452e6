from __future__ import annotations

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    username: str
    password: str


class SignupRequest(BaseModel):
    first_name: str = Field(alias="firstName")
    last_name: str = Field(alias="lastName")
    username: str
    email: str
    password: str
    phone_number: str = Field(alias="phoneNumber")

    model_config = {"populate_by_name": True}


class RefreshRequest(BaseModel):
    token: str


class AuthResponse(BaseModel):
    """Token payload returned by login, signup and refresh.

    ``token`` is the refresh token.
    """

    access_token: str | None = Field(default=None, alias="accessToken")
    token: str | None = None
    username: str | None = None

    model_config = {"populate_by_name": True}


class AuthResult(BaseModel):
    success: bool
    msg: str | None = None
