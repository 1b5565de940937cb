"""Peak ground velocity to intensity conversion.

Uses the MCS regression of Faenza & Michelini, "Regression analysis of MCS
intensity and ground motion parameters in Italy and its application in
ShakeMap" (2010). The Wald et al. (1999) alternative would be
``2.35 + 3.47 * log10(100 * vel)``.
"""

from __future__ import annotations

import math

MIN_INTENSITY = 1
MAX_INTENSITY = 12


def raw_intensity(vel: float) -> float:
    """Convert a peak velocity in m/s into a continuous intensity."""
    return 5.11 + 2.35 * math.log10(100.0 * vel)


def intensity(vel: float) -> int:
    """Convert a peak velocity in m/s into an integer intensity in [1, 12]."""
    if vel <= 0.0:
        return MIN_INTENSITY
    raw = raw_intensity(vel)
    if raw <= float(MIN_INTENSITY):
        return MIN_INTENSITY
    if raw >= float(MAX_INTENSITY):
        return MAX_INTENSITY
    return int(math.floor(raw))


__all__ = ["MIN_INTENSITY", "MAX_INTENSITY", "raw_intensity", "intensity"]
