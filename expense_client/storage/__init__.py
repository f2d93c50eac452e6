from __future__ import annotations

from expense_client.config import Settings
from expense_client.storage.base import (
    ACCESS_TOKEN_KEY,
    CREDENTIAL_KEYS,
    REFRESH_TOKEN_KEY,
    USERNAME_KEY,
    TokenStore,
)
from expense_client.storage.file import JsonFileTokenStore
from expense_client.storage.memory import InMemoryTokenStore

__all__ = [
    "ACCESS_TOKEN_KEY",
    "CREDENTIAL_KEYS",
    "REFRESH_TOKEN_KEY",
    "USERNAME_KEY",
    "InMemoryTokenStore",
    "JsonFileTokenStore",
    "TokenStore",
    "build_token_store",
]


def build_token_store(config: Settings) -> TokenStore:
    backend = config.TOKEN_STORE_BACKEND.lower()
    if backend == "memory":
        return InMemoryTokenStore()
    if backend == "file":
        return JsonFileTokenStore(config.TOKEN_STORE_PATH)
    raise ValueError(f"Unknown token store backend: {config.TOKEN_STORE_BACKEND}")
