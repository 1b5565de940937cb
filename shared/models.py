from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Union

import numpy as np

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

QUALITY_MEASURED = "measured"

INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1

TimeLike = Union[datetime, float, int]


def as_utc(value: TimeLike) -> datetime:
    """Return ``value`` as an aware UTC datetime.

    Naive datetimes are taken to already be UTC; numbers are POSIX seconds.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return EPOCH + timedelta(seconds=float(value))
    raise TypeError(f"cannot interpret {value!r} as a timestamp")


def format_time(value: datetime) -> str:
    """RFC 3339 UTC string with a trailing ``Z``."""
    return as_utc(value).isoformat().replace("+00:00", "Z")


def _freeze_samples(samples: Any) -> np.ndarray:
    """Return a read-only 1D int copy of ``samples``; values must fit in int32."""
    try:
        arr = np.array(samples, dtype=np.int64, copy=True, order="C")
    except OverflowError as exc:
        raise ValueError(f"samples out of range: {exc}") from exc
    if arr.ndim != 1:
        raise ValueError(f"samples must be 1D, got {arr.ndim}D")
    if arr.size and (arr.min() < INT32_MIN or arr.max() > INT32_MAX):
        raise ValueError("samples must fit in 32 bits")
    arr.setflags(write=False)
    return arr


# ----------------------------
# Streaming data models
# ----------------------------

@dataclass(frozen=True)
class Packet:
    """One block of raw integer samples from a single stream."""

    source: str
    srcname: str
    start_time: datetime
    samples: np.ndarray = field(repr=False)

    def __post_init__(self) -> None:
        if not self.srcname:
            raise ValueError("srcname must not be empty")
        object.__setattr__(self, "start_time", as_utc(self.start_time))
        object.__setattr__(self, "samples", _freeze_samples(self.samples))

    @property
    def n_samples(self) -> int:
        return int(self.samples.shape[0])

    def end_time(self, rate: float) -> datetime:
        """Time of the last sample at the given sampling rate."""
        if not rate > 0:
            raise ValueError("rate must be positive")
        return self.start_time + timedelta(seconds=max(self.n_samples - 1, 0) / rate)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Packet":
        """Build a packet from a decoded ``{source, channel, start, samples}`` record."""
        try:
            start = data["start"]
            if isinstance(start, str):
                start = datetime.fromisoformat(start.replace("Z", "+00:00"))
            return cls(
                source=str(data.get("source", "")),
                srcname=str(data["channel"]),
                start_time=start,
                samples=data["samples"],
            )
        except KeyError as exc:
            raise ValueError(f"packet is missing field {exc.args[0]!r}") from exc


@dataclass(frozen=True)
class ImpactMessage:
    """Intensity event produced from one accepted sample block.

    Attributes:
        source: Identifier of the originating data source.
        quality: Always ``"measured"`` for events derived from samples.
        latitude: Station latitude in degrees.
        longitude: Station longitude in degrees.
        time: Instant of peak amplitude within the block.
        mmi: Integer intensity, 1 to 12.
        comment: Name of the originating stream.
    """

    source: str
    quality: str = QUALITY_MEASURED
    latitude: float = 0.0
    longitude: float = 0.0
    time: datetime = EPOCH
    mmi: int = 1
    comment: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "time", as_utc(self.time))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "quality": self.quality,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "time": format_time(self.time),
            "MMI": int(self.mmi),
            "comment": self.comment,
        }


__all__ = [
    "EPOCH",
    "QUALITY_MEASURED",
    "as_utc",
    "format_time",
    "Packet",
    "ImpactMessage",
]
