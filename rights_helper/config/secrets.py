"""Secret accessor facade.

Accounts in OS store:
- telegram_bot_token
"""

from __future__ import annotations

from dataclasses import dataclass

from rights_helper.secrets.base import SecretStoreError, require_secret
from rights_helper.secrets.factory import create_secret_store


@dataclass(frozen=True)
class RuntimeSecrets:
    telegram_bot_token: str


def load_runtime_secrets(service_name: str = "rightshelper") -> RuntimeSecrets:
    store = create_secret_store(service_name=service_name)
    return RuntimeSecrets(telegram_bot_token=require_secret(store, "telegram_bot_token"))


__all__ = ["RuntimeSecrets", "load_runtime_secrets", "SecretStoreError"]
