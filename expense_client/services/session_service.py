from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Callable

import httpx
from pydantic import BaseModel, ValidationError

from expense_client.api.client import REFRESH_ENDPOINT, ApiClient, Method
from expense_client.exceptions import (
    ClientError,
    InvalidCredentials,
    LoginFailed,
    MalformedServerResponse,
    NoActiveSession,
    RequestFailed,
    RequestTimeout,
)
from expense_client.schemas.auth import (
    AuthResponse,
    AuthResult,
    LoginRequest,
    RefreshRequest,
    SignupRequest,
)
from expense_client.storage.base import (
    ACCESS_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    USERNAME_KEY,
    TokenStore,
)

logger = logging.getLogger(__name__)

LOGIN_ENDPOINT = "auth/v1/login"
SIGNUP_ENDPOINT = "auth/v1/signup"
LOGOUT_ENDPOINT = "auth/v1/logout"
PING_ENDPOINT = "auth/v1/ping"


class AuthStatus(str, enum.Enum):
    CHECKING = "checking"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"


class SessionState(BaseModel):
    status: AuthStatus = AuthStatus.CHECKING
    username: str | None = None
    is_loading: bool = True

    model_config = {"frozen": True}

    @property
    def is_authenticated(self) -> bool:
        return self.status == AuthStatus.AUTHENTICATED


SessionListener = Callable[[SessionState], None]


class SessionStore:
    """Observable holder of the current session state.

    Only ``SessionManager`` publishes; everything else reads ``state`` or
    subscribes.
    """

    def __init__(self) -> None:
        self._state = SessionState()
        self._listeners: list[SessionListener] = []

    @property
    def state(self) -> SessionState:
        return self._state

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, state: SessionState) -> None:
        if state == self._state:
            return
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Session listener failed")


def _failure(exc: Exception, fallback: str) -> AuthResult:
    return AuthResult(success=False, msg=str(exc) or fallback)


def _parse_tokens(response: httpx.Response) -> AuthResponse:
    try:
        data = response.json()
        if not isinstance(data, dict):
            raise MalformedServerResponse()
        tokens = AuthResponse.model_validate(data)
    except (ValueError, ValidationError) as exc:
        raise MalformedServerResponse() from exc
    if not tokens.access_token or not tokens.token:
        raise MalformedServerResponse()
    return tokens


class SessionManager:
    """Authentication state machine and sole writer of the credential keys.

    Public operations are serialised by a single lock so concurrent login and
    logout calls cannot interleave their storage writes. Every successful
    operation writes storage before publishing the new state.
    """

    def __init__(
        self,
        client: ApiClient,
        token_store: TokenStore | None = None,
        store: SessionStore | None = None,
        settle_delay: float = 0.3,
    ) -> None:
        self.client = client
        self.token_store = token_store or client.token_store
        self.store = store or SessionStore()
        self.settle_delay = settle_delay
        self._lock = asyncio.Lock()

    @property
    def state(self) -> SessionState:
        return self.store.state

    # ------------------------------------------------------------------
    # State publication
    # ------------------------------------------------------------------

    def _set_authenticated(self, username: str) -> None:
        self.store.publish(
            SessionState(status=AuthStatus.AUTHENTICATED, username=username, is_loading=False)
        )

    def _set_unauthenticated(self) -> None:
        self.store.publish(SessionState(status=AuthStatus.UNAUTHENTICATED, is_loading=False))

    def _set_checking(self, is_loading: bool) -> None:
        self.store.publish(
            self.store.state.model_copy(
                update={"status": AuthStatus.CHECKING, "is_loading": is_loading}
            )
        )

    async def _store_credentials(
        self, access_token: str, refresh_token: str, username: str
    ) -> None:
        await self.token_store.set(ACCESS_TOKEN_KEY, access_token)
        await self.token_store.set(REFRESH_TOKEN_KEY, refresh_token)
        await self.token_store.set(USERNAME_KEY, username)

    async def _clear_credentials(self) -> OSError | None:
        try:
            await self.token_store.clear()
        except OSError as exc:
            logger.error("Failed to clear stored credentials: %s", exc)
            return exc
        return None

    async def _post(self, endpoint: str, payload: dict) -> httpx.Response:
        return await self.client.send(
            Method.POST,
            endpoint,
            json=payload,
            headers={"Content-Type": "application/json"},
        )

    # ------------------------------------------------------------------
    # Startup check
    # ------------------------------------------------------------------

    async def check_session(self) -> AuthResult:
        async with self._lock:
            self._set_checking(is_loading=True)
            try:
                return await self._check_session()
            except (ClientError, OSError) as exc:
                logger.warning("Session check failed: %s", exc)
                self._set_unauthenticated()
                return _failure(exc, "Session check failed")

    async def _check_session(self) -> AuthResult:
        access_token = await self.token_store.get(ACCESS_TOKEN_KEY)
        if access_token:
            response = await self.client.send(
                Method.GET,
                PING_ENDPOINT,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            # An empty ping body means the access token is no longer accepted.
            if response.text == "":
                refreshed = await self._refresh_token()
                if not refreshed.success:
                    self._set_unauthenticated()
                    return refreshed

        username = await self.token_store.get(USERNAME_KEY)
        access_token = await self.token_store.get(ACCESS_TOKEN_KEY)
        refresh_token = await self.token_store.get(REFRESH_TOKEN_KEY)
        if username and access_token and refresh_token:
            self._set_authenticated(username)
            return AuthResult(success=True)

        self._set_unauthenticated()
        return AuthResult(success=False, msg="Not authenticated")

    # ------------------------------------------------------------------
    # Login / registration
    # ------------------------------------------------------------------

    async def login(self, username: str, password: str) -> AuthResult:
        async with self._lock:
            try:
                # Drop the previous session first so a failed login never
                # leaves stale credentials active.
                await self.token_store.clear()
                self._set_unauthenticated()

                response = await self._post(
                    LOGIN_ENDPOINT, LoginRequest(username=username, password=password).model_dump()
                )
                if response.status_code == 401:
                    raise InvalidCredentials()
                if not response.is_success:
                    raise LoginFailed(response.status_code, response.text)
                tokens = _parse_tokens(response)
                await self._store_credentials(tokens.access_token, tokens.token, username)
            except (ClientError, OSError) as exc:
                logger.warning("Login failed for %s: %s", username, exc)
                self._set_unauthenticated()
                return _failure(exc, "An error occurred during login")

            self._set_authenticated(username)
            return AuthResult(success=True)

    async def register(
        self,
        first_name: str,
        last_name: str,
        username: str,
        email: str,
        password: str,
        phone_number: str,
    ) -> AuthResult:
        body = SignupRequest(
            first_name=first_name,
            last_name=last_name,
            username=username,
            email=email,
            password=password,
            phone_number=phone_number,
        )
        async with self._lock:
            try:
                response = await self._post(SIGNUP_ENDPOINT, body.model_dump(by_alias=True))
                if not response.is_success:
                    raise RequestFailed(
                        response.status_code, f"Registration failed ({response.status_code})"
                    )
                tokens = _parse_tokens(response)
                stored_username = tokens.username or username
                await self._store_credentials(tokens.access_token, tokens.token, stored_username)
            except (ClientError, OSError) as exc:
                logger.warning("Registration failed for %s: %s", username, exc)
                return _failure(exc, "An error occurred during registration")

            self._set_authenticated(stored_username)
            return AuthResult(success=True)

    # ------------------------------------------------------------------
    # Logout
    # ------------------------------------------------------------------

    async def logout(self) -> AuthResult:
        async with self._lock:
            return await self._logout()

    async def _logout(self) -> AuthResult:
        self._set_checking(is_loading=self.store.state.is_loading)

        token = await self.token_store.get(REFRESH_TOKEN_KEY)
        if not token:
            await self._clear_credentials()
            self._set_unauthenticated()
            return _failure(NoActiveSession(), "No active session to logout")

        response: httpx.Response | None = None
        error: Exception | None = None
        try:
            response = await self._post(LOGOUT_ENDPOINT, RefreshRequest(token=token).model_dump())
        except ClientError as exc:
            logger.warning("Logout request failed: %s", exc)
            error = exc
        finally:
            # Local credentials go away whatever the server said.
            storage_error = await self._clear_credentials()
            await asyncio.sleep(self.settle_delay)
            self._set_unauthenticated()

        error = error or storage_error
        if error is not None:
            return _failure(error, "An error occurred during logout")
        if not response.is_success:
            logger.warning("Logout rejected by server with status %s", response.status_code)
            return AuthResult(
                success=False, msg=f"Logout failed on server ({response.status_code})"
            )
        return AuthResult(success=True)

    # ------------------------------------------------------------------
    # Token refresh
    # ------------------------------------------------------------------

    async def refresh_token(self) -> AuthResult:
        async with self._lock:
            return await self._refresh_token()

    async def _refresh_token(self) -> AuthResult:
        token = await self.token_store.get(REFRESH_TOKEN_KEY)
        if not token:
            self._set_unauthenticated()
            return AuthResult(success=False, msg="No refresh token available")

        try:
            response = await self._post(REFRESH_ENDPOINT, RefreshRequest(token=token).model_dump())
            if not response.is_success:
                if response.status_code in (401, 403):
                    logger.info("Refresh token rejected (%s), logging out", response.status_code)
                    await self._logout()
                return AuthResult(
                    success=False, msg=f"Token refresh failed ({response.status_code})"
                )
            tokens = _parse_tokens(response)
            await self.token_store.set(ACCESS_TOKEN_KEY, tokens.access_token)
            await self.token_store.set(REFRESH_TOKEN_KEY, tokens.token)
        except RequestTimeout as exc:
            # The refresh token may still be valid; keep the session.
            logger.warning("Token refresh timed out")
            return _failure(exc, "Request timed out. Server might be unreachable.")
        except (ClientError, OSError) as exc:
            logger.warning("Token refresh failed: %s", exc)
            await self._logout()
            return _failure(exc, "An error occurred during token refresh")

        username = await self.token_store.get(USERNAME_KEY)
        if username:
            self._set_authenticated(username)
        return AuthResult(success=True)
