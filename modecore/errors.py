"""Exceptions raised by the mode engine."""

from __future__ import annotations


class ModeEngineError(Exception):
    """Base exception for the mode engine."""

    pass


class RegistryConfigError(ModeEngineError):
    """Raised at startup when the mode catalog is inconsistent."""

    pass


class InvalidModeReferenceError(ModeEngineError):
    """Raised when a mode id is not registered."""

    def __init__(self, mode_id: str) -> None:
        self.mode_id = mode_id
        super().__init__(f"Unknown mode '{mode_id}'")


class CapacityExceededError(ModeEngineError):
    """Raised when a mode already serves its maximum number of sessions."""

    def __init__(self, mode_id: str, limit: int) -> None:
        self.mode_id = mode_id
        self.limit = limit
        super().__init__(
            f"Maximum concurrent sessions ({limit}) exceeded for mode '{mode_id}'"
        )


class ProcessingTimeoutError(ModeEngineError):
    """Raised when a mode does not finish processing within its timeout."""

    def __init__(self, mode_id: str, timeout_ms: int) -> None:
        self.mode_id = mode_id
        self.timeout_ms = timeout_ms
        super().__init__(f"Mode '{mode_id}' processing timeout after {timeout_ms}ms")


class ProcessingFailureError(ModeEngineError):
    """Raised when a mode fails while activating or processing input."""

    def __init__(self, mode_id: str, message: str) -> None:
        self.mode_id = mode_id
        self.message = message
        super().__init__(f"Mode '{mode_id}' failed: {message}")


class SessionNotFoundError(ModeEngineError):
    """Raised when a session id has no live session."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session '{session_id}' not found")


class UnsupportedFormatError(ModeEngineError):
    """Raised for an unknown history export/import format."""

    def __init__(self, fmt: str) -> None:
        self.format = fmt
        super().__init__(f"Unsupported history format: {fmt}")
