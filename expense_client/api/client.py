from __future__ import annotations

import asyncio
import enum
import logging
from typing import Any

import httpx

from expense_client.exceptions import (
    AuthenticationRequired,
    ClientError,
    NetworkError,
    RequestFailed,
    RequestTimeout,
    SessionExpired,
)
from expense_client.schemas.auth import AuthResponse
from expense_client.storage.base import ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, TokenStore

logger = logging.getLogger(__name__)

REFRESH_ENDPOINT = "auth/v1/refreshToken"


class Method(str, enum.Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


def _is_json(response: httpx.Response) -> bool:
    return "application/json" in response.headers.get("content-type", "")


def _error_message(response: httpx.Response) -> str | None:
    if _is_json(response):
        try:
            data = response.json()
        except ValueError:
            return None
        if isinstance(data, dict):
            return data.get("message") or data.get("error") or None
        return None
    return response.text or None


class ApiClient:
    """Gateway for every call against the expense backend.

    Attaches bearer tokens from the token store, enforces the request timeout
    and performs at most one transparent refresh-and-retry when the backend
    answers 401.
    """

    def __init__(
        self,
        base_url: str,
        token_store: TokenStore,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") + "/"
        self.token_store = token_store
        self.timeout = timeout
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def __aenter__(self) -> ApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def send(
        self,
        method: Method | str,
        endpoint: str,
        *,
        json: Any = None,
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Issue one raw request within the timeout budget.

        Cancelling on timeout closes the underlying connection.
        """
        method = Method(method)
        try:
            async with asyncio.timeout(self.timeout):
                return await self._http.request(
                    method.value, endpoint, json=json, headers=headers, params=params
                )
        except (TimeoutError, httpx.TimeoutException) as exc:
            raise RequestTimeout() from exc
        except httpx.TransportError as exc:
            raise NetworkError(str(exc) or "Network request failed") from exc

    async def request(
        self,
        method: Method | str,
        endpoint: str,
        body: Any = None,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
        requires_auth: bool = True,
        use_refresh_token: bool = False,
    ) -> Any:
        method = Method(method)
        try:
            return await self._request(
                method, endpoint, body, headers, params, requires_auth, use_refresh_token, False
            )
        except ClientError as exc:
            logger.error("API error: %s %s: %s", method.value, endpoint, exc)
            raise

    async def _request(
        self,
        method: Method,
        endpoint: str,
        body: Any,
        headers: dict[str, str] | None,
        params: dict[str, str] | None,
        requires_auth: bool,
        use_refresh_token: bool,
        retried: bool,
    ) -> Any:
        request_headers = {"Content-Type": "application/json"}
        if requires_auth:
            key = REFRESH_TOKEN_KEY if use_refresh_token else ACCESS_TOKEN_KEY
            token = await self.token_store.get(key)
            if not token:
                raise AuthenticationRequired()
            request_headers["Authorization"] = f"Bearer {token}"
        request_headers.update(headers or {})

        payload = body if method != Method.GET else None
        response = await self.send(
            method, endpoint, json=payload, headers=request_headers, params=params
        )

        if response.status_code == 401 and not use_refresh_token:
            # The re-issued request never triggers a second refresh.
            if retried or not await self._refresh_tokens():
                raise SessionExpired()
            return await self._request(
                method, endpoint, body, headers, params, requires_auth, use_refresh_token, True
            )

        if not response.is_success:
            raise RequestFailed(response.status_code, _error_message(response))

        if response.status_code == 204:
            return {}
        if _is_json(response):
            if not response.content:
                return {}
            return response.json()
        return response.text

    async def _refresh_tokens(self) -> bool:
        token = await self.token_store.get(REFRESH_TOKEN_KEY)
        if not token:
            return False
        try:
            data = await self._request(
                Method.POST,
                REFRESH_ENDPOINT,
                {"token": token},
                None,
                None,
                False,
                True,
                False,
            )
        except ClientError as exc:
            logger.warning("Token refresh failed: %s", exc)
            return False

        tokens = AuthResponse.model_validate(data) if isinstance(data, dict) else AuthResponse()
        if not tokens.access_token or not tokens.token:
            logger.warning("Invalid refresh token response")
            return False

        await self.token_store.set(ACCESS_TOKEN_KEY, tokens.access_token)
        await self.token_store.set(REFRESH_TOKEN_KEY, tokens.token)
        return True
