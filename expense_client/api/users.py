from __future__ import annotations

from pydantic import ValidationError

from expense_client.api.client import ApiClient, Method
from expense_client.exceptions import MalformedServerResponse
from expense_client.schemas.user import UserProfile


class UserService:
    def __init__(self, client: ApiClient) -> None:
        self.client = client

    async def get_current_user(self) -> UserProfile:
        data = await self.client.request(Method.GET, "user/v1/getUser")
        try:
            return UserProfile.model_validate(data)
        except ValidationError as exc:
            raise MalformedServerResponse(f"Invalid user profile from server: {exc}") from exc
