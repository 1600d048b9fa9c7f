"""
Error taxonomy for background keying.

InvalidImageError aborts the run. BackendUnavailableError and BackendError
are recoverable inside the advanced stages and push the pipeline onto the
threshold fallback. StageError wraps anything else a stage throws.
"""
from __future__ import annotations
from typing import Any, Dict, Optional


class KeyingError(Exception):
    """Base exception for the keying engine."""

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.stage = stage
        self.details = details or {}
        super().__init__(self.message)


class InvalidImageError(KeyingError):
    """Missing file, undecodable raster or zero-sized image."""


class BackendUnavailableError(KeyingError):
    """The raster backend (an external tool) cannot be started at all."""

    def __init__(self, tool: str, install_hint: Optional[str] = None, **kwargs):
        message = f"{tool} is required but was not found on PATH."
        if install_hint:
            message += f" Install it: {install_hint}"
        super().__init__(message, **kwargs)
        self.details["tool"] = tool


class BackendError(KeyingError):
    """The backend ran but rejected the input."""

    def __init__(self, tool: str, returncode: int, stderr: str = "", **kwargs):
        stderr = (stderr or "").strip()
        super().__init__(f"{tool} failed (exit {returncode}): {stderr}", **kwargs)
        self.details["tool"] = tool
        self.details["returncode"] = returncode
        self.details["stderr"] = stderr


class StageError(KeyingError):
    """A keying stage raised during otherwise valid processing."""

    def __init__(self, message: str, stage: str, **kwargs):
        super().__init__(message, stage=stage, **kwargs)
