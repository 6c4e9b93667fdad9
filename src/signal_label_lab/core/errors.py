"""Error taxonomy for session commands.

Parsing never raises on malformed rows (it records ParseDiagnostic entries
instead). Commands raise one of the errors below; each carries a ``kind``
so callers can tell user-correctable input apart from missing alignment
metadata.
"""
from __future__ import annotations


class SessionError(Exception):
    """Base error for all command-layer failures."""

    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        """Structured failure payload (kind + message)."""
        return {"kind": self.kind, "message": self.message}


class ValidationError(SessionError, ValueError):
    """Raised when user-supplied ranges, labels or indices are invalid."""

    kind = "validation"


class AlignmentError(SessionError):
    """Raised when absolute-time metadata needed to align or export is missing."""

    kind = "alignment"
