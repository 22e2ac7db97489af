"""Secret store factory based on OS."""

from __future__ import annotations

import platform

from rights_helper.secrets.base import SecretStore, SecretStoreError
from rights_helper.secrets.keyring_store import KeyringSecretStore

_BACKEND_LABELS = {
    "darwin": "Keychain",
    "windows": "Credential Manager",
    "linux": "Secret Service",
}


def create_secret_store(service_name: str = "rightshelper") -> SecretStore:
    system = platform.system().lower()
    label = _BACKEND_LABELS.get(system)
    if label is None:
        raise SecretStoreError(
            f"unsupported OS for secret storage: {platform.system()} "
            "(supported: macOS, Windows, Linux)"
        )
    return KeyringSecretStore(service_name=service_name, backend_label=label)
