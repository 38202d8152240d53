from __future__ import annotations


class AnnotextError(Exception):
    """Base error for all user-facing annotext exceptions."""


class ConfigurationError(AnnotextError):
    """Raised when configuration is invalid or incomplete."""


class ResolutionError(AnnotextError):
    """Raised when an external annotation is malformed or incomplete."""


class PreconditionError(AnnotextError):
    """Raised when an operation is attempted without the state it needs."""


class TransportError(AnnotextError):
    """Raised when a remote store cannot be reached or answers with an error."""

    def __init__(self, message: str, *, url: str | None = None, status: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status = status


class CoordinateSpaceError(ValueError):
    """Raised when a span is converted from a coordinate space it is not in."""
