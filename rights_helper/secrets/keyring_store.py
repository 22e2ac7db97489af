"""keyring-backed secret adapter (Keychain, Credential Manager, Secret Service)."""

from __future__ import annotations

import importlib

from rights_helper.secrets.base import SecretStore, SecretStoreError


class KeyringSecretStore(SecretStore):
    def __init__(self, service_name: str, backend_label: str) -> None:
        self._service_name = service_name
        self._label = backend_label
        try:
            self._keyring = importlib.import_module("keyring")
        except Exception as exc:  # pragma: no cover - import guarded at runtime
            raise SecretStoreError(f"keyring package is required for {backend_label} access") from exc

    @property
    def backend_label(self) -> str:
        return self._label

    def get_secret(self, account: str) -> str:
        try:
            value = self._keyring.get_password(self._service_name, account)
        except Exception as exc:
            raise SecretStoreError(f"failed to read {self._label} secret '{account}'") from exc
        if not value:
            raise SecretStoreError(f"missing {self._label} secret '{account}'")
        return value
