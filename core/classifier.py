from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Pattern, Protocol

# <prefix>_<band><instrument><component>, e.g. NZ_WEL_10_HNZ or NZ_WEL_10_HHZ
ACCELERATION = r"^[A-Z0-9_]+_[A-Z]N[A-Z0-9]$"
VELOCITY = r"^[A-Z0-9_]+_[A-Z]H[A-Z0-9]$"


class ChannelClassifier(Protocol):
    """Decides which physical quantity a channel name records."""

    def is_acceleration(self, srcname: str) -> bool:
        ...

    def is_velocity(self, srcname: str) -> bool:
        ...


@dataclass(frozen=True)
class RegexChannelClassifier:
    """Classifies SEED-style stream names by their instrument code."""

    acceleration: Pattern[str] = field(default_factory=lambda: re.compile(ACCELERATION))
    velocity: Pattern[str] = field(default_factory=lambda: re.compile(VELOCITY))

    def is_acceleration(self, srcname: str) -> bool:
        return self.acceleration.fullmatch(srcname) is not None

    def is_velocity(self, srcname: str) -> bool:
        return self.velocity.fullmatch(srcname) is not None


DEFAULT_CLASSIFIER = RegexChannelClassifier()


__all__ = [
    "ACCELERATION",
    "VELOCITY",
    "ChannelClassifier",
    "RegexChannelClassifier",
    "DEFAULT_CLASSIFIER",
]
