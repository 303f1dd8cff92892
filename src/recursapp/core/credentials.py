"""Persisted per-provider API keys (set, get, clear)."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import yaml

from .config import USER_DIR

DEFAULT_CREDENTIALS_PATH = USER_DIR / "credentials.yaml"


class CredentialStore:
    """YAML-backed key/value store, one secret per provider name."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else DEFAULT_CREDENTIALS_PATH

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = yaml.safe_load(self.path.read_text(encoding="utf-8-sig")) or {}
        except (OSError, yaml.YAMLError):
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items() if v}

    def _save(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(yaml.safe_dump(data, sort_keys=True), encoding="utf-8")
        try:
            os.chmod(self.path, 0o600)
        except OSError:
            pass

    def get(self, provider: str) -> Optional[str]:
        return self._load().get(provider)

    def set(self, provider: str, secret: str) -> None:
        secret = secret.strip()
        if not secret:
            raise ValueError("Credential must not be empty")
        data = self._load()
        data[provider] = secret
        self._save(data)

    def clear(self, provider: Optional[str] = None) -> None:
        """Remove one provider's key, or every key when ``provider`` is None."""
        if provider is None:
            self._save({})
            return
        data = self._load()
        if data.pop(provider, None) is not None:
            self._save(data)

    def providers(self) -> list[str]:
        return sorted(self._load())
