from __future__ import annotations

from pydantic import BaseModel


class UserProfile(BaseModel):
    user_id: str
    first_name: str
    last_name: str | None = None
    username: str | None = None
    phone_number: str | None = None
    email: str | None = None
    profile_pic: str | None = None
