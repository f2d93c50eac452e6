from __future__ import annotations

from collections.abc import AsyncGenerator

import httpx
import pytest

from expense_client.api.client import ApiClient
from expense_client.services.session_service import SessionManager
from expense_client.storage import (
    ACCESS_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    USERNAME_KEY,
    InMemoryTokenStore,
)
from fake_backend import FakeBackend


@pytest.fixture()
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture()
def token_store() -> InMemoryTokenStore:
    return InMemoryTokenStore()


@pytest.fixture()
async def api_client(
    backend: FakeBackend, token_store: InMemoryTokenStore
) -> AsyncGenerator[ApiClient]:
    async with ApiClient(
        "http://test",
        token_store,
        timeout=5.0,
        transport=httpx.ASGITransport(app=backend.app),
    ) as client:
        yield client


@pytest.fixture()
def session(api_client: ApiClient, token_store: InMemoryTokenStore) -> SessionManager:
    return SessionManager(api_client, token_store, settle_delay=0)


@pytest.fixture()
async def logged_in(backend: FakeBackend, token_store: InMemoryTokenStore) -> dict[str, str]:
    """Store a valid credential set for alice without going through login."""
    tokens = backend.issue_tokens("alice")
    await token_store.set(ACCESS_TOKEN_KEY, tokens["accessToken"])
    await token_store.set(REFRESH_TOKEN_KEY, tokens["token"])
    await token_store.set(USERNAME_KEY, "alice")
    return tokens
