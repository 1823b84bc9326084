from __future__ import annotations

from typing import Optional


class RbaSyncError(Exception):
    """Base class for errors that abort an export or import run."""


class ConfigurationError(RbaSyncError):
    pass


class LocalStoreError(RbaSyncError):
    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class RemoteServiceError(RbaSyncError):
    def __init__(self, message: str, status_code: Optional[int] = None, detail: str = "") -> None:
        super().__init__(message if not detail else f"{message}: {detail}")
        self.status_code = status_code
        self.detail = detail


class RemapError(RbaSyncError):
    """Export-mode and standard-mode fetches of a runbook do not line up step by step."""
