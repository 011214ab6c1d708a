"""
config.py
=========

Client-side settings.

- ClientConfig: service URL and timeouts, read from the environment (.env honoured)
- LocalSettings: small JSON file holding the session token and, when the
  environment does not provide one, a hand-entered service URL
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_PATH = Path.home() / ".classroom_portal" / "settings.json"
DEFAULT_BOOTSTRAP_TIMEOUT = 15.0
DEFAULT_REQUEST_TIMEOUT = 10.0

CONFIG_REMEDIATION = (
    "No portal service URL is configured. Set PORTAL_URL in the environment or "
    "in a .env file (for example PORTAL_URL=http://localhost:5000), or save the "
    "URL with LocalSettings.save_service_url(), then restart."
)


class LocalSettings:
    """JSON-backed store for the session token and a manually entered service URL."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else DEFAULT_SETTINGS_PATH
        self._data: Dict[str, Any] = self._read()

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable settings file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self._data, ensure_ascii=False, indent=2), encoding="utf-8")

    @property
    def token(self) -> Optional[str]:
        return self._data.get("token") or None

    def save_token(self, token: str) -> None:
        self._data["token"] = token
        self._write()

    def clear_token(self) -> None:
        if self._data.pop("token", None) is not None:
            self._write()

    @property
    def service_url(self) -> Optional[str]:
        return self._data.get("service_url") or None

    def save_service_url(self, url: str) -> None:
        self._data["service_url"] = url.strip().rstrip("/")
        self._write()


@dataclass
class ClientConfig:
    base_url: str = ""
    bootstrap_timeout: float = DEFAULT_BOOTSTRAP_TIMEOUT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    settings_path: Optional[Path] = None

    def __post_init__(self):
        self.base_url = (self.base_url or "").strip().rstrip("/")

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url)

    @classmethod
    def from_env(cls, settings: Optional[LocalSettings] = None) -> "ClientConfig":
        load_dotenv()
        settings_path = os.environ.get("PORTAL_SETTINGS")
        if settings is None:
            settings = LocalSettings(Path(settings_path) if settings_path else None)
        return cls(
            base_url=os.environ.get("PORTAL_URL") or settings.service_url or "",
            bootstrap_timeout=_float_env("PORTAL_TIMEOUT", DEFAULT_BOOTSTRAP_TIMEOUT),
            request_timeout=_float_env("PORTAL_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
            settings_path=settings.path,
        )


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"{name}={raw!r} is not a number; using {default}")
        return default
