"""Exception types raised by stream initialisation and block processing."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from shared.models import ImpactMessage


class ImpactError(Exception):
    """Base class for all errors raised by the intensity pipeline."""


class ConfigError(ImpactError):
    """Stream descriptors could not be read, parsed or coerced."""


class ClassificationError(ImpactError, ValueError):
    """A channel name is neither acceleration-like nor velocity-like."""

    def __init__(self, srcname: str) -> None:
        super().__init__(f"unable to match {srcname!r} for velocity or acceleration")
        self.srcname = srcname


class ValidationError(ImpactError, ValueError):
    """A sample block was rejected before any stream state was committed.

    ``message`` holds the partially populated event record; callers must not
    forward it.
    """

    def __init__(self, reason: str, message: Optional["ImpactMessage"] = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.message = message


__all__ = ["ImpactError", "ConfigError", "ClassificationError", "ValidationError"]
