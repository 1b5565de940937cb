from __future__ import annotations

import json
import logging
import math
import threading
from dataclasses import dataclass, replace
from datetime import timedelta
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Union

from core.errors import ConfigError
from core.stream import Stream

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreamDescriptor:
    """Identity and physical parameters of one configured stream."""

    name: str = ""
    latitude: float = 0.0
    longitude: float = 0.0
    rate: float = 0.0
    gain: float = 1.0
    q: float = 0.0

    @classmethod
    def from_mapping(cls, key: str, raw: Any) -> "StreamDescriptor":
        if not isinstance(raw, Mapping):
            raise ConfigError(f"stream {key!r}: descriptor must be an object")
        # keys are matched case-insensitively so "Rate" and "rate" both load
        fields = {str(k).lower(): v for k, v in raw.items()}

        def _as_float(name: str, default: float) -> float:
            value = fields.get(name, default)
            if isinstance(value, bool):
                raise ConfigError(f"stream {key!r}: {name} must be a number")
            try:
                number = float(value)
            except (TypeError, ValueError) as exc:
                raise ConfigError(f"stream {key!r}: {name} must be a number") from exc
            if not math.isfinite(number):
                raise ConfigError(f"stream {key!r}: {name} must be finite")
            return number

        name = fields.get("name", "")
        if not isinstance(name, str):
            raise ConfigError(f"stream {key!r}: name must be a string")

        return cls(
            name=name,
            latitude=_as_float("latitude", cls.latitude),
            longitude=_as_float("longitude", cls.longitude),
            rate=_as_float("rate", cls.rate),
            gain=_as_float("gain", cls.gain),
            q=_as_float("q", cls.q),
        )

    def to_stream(self) -> Stream:
        return Stream(
            name=self.name,
            latitude=self.latitude,
            longitude=self.longitude,
            rate=self.rate,
            gain=self.gain,
            q=self.q,
        )


def parse_streams(text: Union[str, bytes]) -> Dict[str, Stream]:
    """Decode a JSON object mapping stream names to descriptors."""
    try:
        raw = json.loads(text)
    except ValueError as exc:
        raise ConfigError(f"could not parse stream descriptors: {exc}") from exc
    if not isinstance(raw, Mapping):
        raise ConfigError("stream descriptors must be a JSON object")
    return {str(key): StreamDescriptor.from_mapping(str(key), value).to_stream() for key, value in raw.items()}


def load_streams(path: Union[str, Path]) -> Dict[str, Stream]:
    """Load stream descriptors from a JSON file."""
    config = Path(path)
    try:
        text = config.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"could not load config file {str(config)!r}: {exc}") from exc
    try:
        streams = parse_streams(text)
    except ConfigError as exc:
        raise ConfigError(f"{config}: {exc}") from exc
    logger.info("Loaded %d stream descriptors from %s", len(streams), config)
    return streams


@dataclass(frozen=True)
class ProcessingSettings:
    """Noise and notification policy shared by every stream."""

    probation: timedelta = timedelta(minutes=10)
    level: int = 4
    interval: timedelta = timedelta(minutes=1)

    def validate(self) -> None:
        if self.probation < timedelta(0):
            raise ValueError("probation must be non-negative")
        if self.interval < timedelta(0):
            raise ValueError("interval must be non-negative")


class ProcessingSettingsStore:
    """
    Thread-safe settings container so a host can retune the noise policy
    while workers read it.
    """

    def __init__(self, initial: Optional[ProcessingSettings] = None) -> None:
        self._settings = initial or ProcessingSettings()
        self._settings.validate()
        self._lock = threading.Lock()
        self._subscribers: Dict[int, Callable[[ProcessingSettings], None]] = {}
        self._next_token = 0

    def get(self) -> ProcessingSettings:
        with self._lock:
            return self._settings

    def update(self, **kwargs) -> ProcessingSettings:
        with self._lock:
            new_settings = replace(self._settings, **kwargs)
            new_settings.validate()
            self._settings = new_settings
            callbacks = list(self._subscribers.values())
        for callback in callbacks:
            try:
                callback(new_settings)
            except Exception as exc:
                logger.debug("Processing settings subscriber callback failed: %s", exc)
                continue
        return new_settings

    def subscribe(self, callback: Callable[[ProcessingSettings], None], *, replay: bool = True) -> Callable[[], None]:
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._subscribers[token] = callback
            snapshot = self._settings
        if replay:
            callback(snapshot)

        def unsubscribe() -> None:
            with self._lock:
                self._subscribers.pop(token, None)

        return unsubscribe


__all__ = [
    "StreamDescriptor",
    "parse_streams",
    "load_streams",
    "ProcessingSettings",
    "ProcessingSettingsStore",
]
