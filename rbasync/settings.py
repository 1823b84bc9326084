# rbasync/settings.py
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from .errors import ConfigurationError

ENV_HOST = "NOI_HOST"
ENV_USER = "NOI_API_KEY_USER"
ENV_PASSWORD = "NOI_API_KEY_PW"

_ENV_KEYS = {
    "host": ENV_HOST,
    "user": ENV_USER,
    "password": ENV_PASSWORD,
    "timeout_s": "RBASYNC_TIMEOUT",
    "retries": "RBASYNC_RETRIES",
    "verify_tls": "RBASYNC_VERIFY_TLS",
}


def _mask_secret(s: str) -> str:
    # fixed length so the real length never leaks
    return "********" if (s or "").strip() else ""


class SyncSettings(BaseModel):
    """
    Connection settings for the RBA API.

    Built once by the CLI and handed to RbaClient; nothing reads the
    environment after that.
    """
    host: str = Field(default="", description="host[:port] of the RBA API")
    user: str = Field(default="", description="API key user")
    password: str = Field(default="", description="API key password")
    scheme: str = Field(default="https")
    timeout_s: float = Field(default=30.0)
    retries: int = Field(default=1, ge=1, description="attempts per fetch/create request")
    verify_tls: bool = Field(default=True)

    @property
    def base_url(self) -> str:
        return f"{self.scheme}://{self.host.rstrip('/')}"

    def require_credentials(self) -> "SyncSettings":
        missing = [_ENV_KEYS[f] for f in ("host", "user", "password") if not getattr(self, f)]
        if missing:
            raise ConfigurationError(f"Environment variables {', '.join(missing)} need to be set")
        return self

    def redacted(self) -> Dict[str, Any]:
        data = self.model_dump()
        data["password"] = _mask_secret(self.password)
        return data


def _from_env(environ: Mapping[str, str]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for field, key in _ENV_KEYS.items():
        value = (environ.get(key) or "").strip()
        if value:
            out[field] = value
    return out


def _from_file(path: Path) -> Dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text("utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"{path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path}: expected a mapping of settings")
    return data


def load_settings(
    config_path: Optional[str] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> SyncSettings:
    """
    Resolve settings. Precedence, lowest first:
    - YAML config file (when given)
    - environment variables (a .env file is loaded into the process env)
    - explicit overrides, e.g. CLI flags; None values are ignored
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    merged: Dict[str, Any] = {}
    if config_path:
        path = Path(config_path).expanduser()
        if not path.is_file():
            raise ConfigurationError(f"config file not found: {path}")
        merged.update(_from_file(path))
    merged.update(_from_env(environ))
    merged.update({k: v for k, v in (overrides or {}).items() if v is not None})
    try:
        return SyncSettings.model_validate(merged)
    except ValidationError as e:
        raise ConfigurationError(f"invalid settings: {e}") from e
