"""Exception hierarchy for digitnet.

Every error raised deliberately by the package derives from
:class:`DigitNetError` and additionally from the closest builtin exception, so
callers can catch either the specific class or the builtin family.
"""

from __future__ import annotations


class DigitNetError(Exception):
    """Base exception for all digitnet errors."""


class FormatError(DigitNetError, ValueError):
    """Raised when an IDX file or model archive is malformed."""

    def __init__(self, message: str, path: str | None = None) -> None:
        self.path = path
        if path is not None:
            message = f"{message}: {path}"
        super().__init__(message)


class UntrainedModelError(DigitNetError, RuntimeError):
    """Raised when prediction needs parameters that were never initialised."""


class InvalidAxisError(DigitNetError, ValueError):
    """Raised when an axis reduction is requested on an axis other than 0 or 1."""

    def __init__(self, axis: object) -> None:
        self.axis = axis
        super().__init__(f"axis must be 0 or 1, got {axis!r}")


class UnimplementedActivationError(DigitNetError, NotImplementedError):
    """Raised when a layer selects an activation without an implementation."""

    def __init__(self, kind: object) -> None:
        self.kind = kind
        super().__init__(f"Activation {kind!s} is not implemented")


__all__ = [
    "DigitNetError",
    "FormatError",
    "InvalidAxisError",
    "UnimplementedActivationError",
    "UntrainedModelError",
]
