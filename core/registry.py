"""Host-side registry of configured streams.

The registry owns the mapping from stream name to :class:`~core.stream.Stream`,
binds each stream to its filters the first time a block for it arrives, and
turns each accepted block into at most one event. Streams are independent, so
separate worker threads may drive different streams; the registry only locks
its own lookup tables.

Example::

    from core.registry import StreamRegistry
    from shared.config import load_streams

    registry = StreamRegistry(load_streams("streams.json"))
    message = registry.process("NZ.WEL", "NZ_WEL_10_HNZ", start, samples)
    if message is not None:
        print(message.to_dict())
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Set, Union

import numpy as np

from core.classifier import ChannelClassifier
from core.errors import ClassificationError, ValidationError
from core.stream import Stream
from shared.config import ProcessingSettings, ProcessingSettingsStore
from shared.models import ImpactMessage, Packet, TimeLike, as_utc

logger = logging.getLogger(__name__)


class StreamRegistry:
    """Routes sample blocks to their streams and applies the flush policy."""

    def __init__(
        self,
        streams: Mapping[str, Stream],
        settings: Union[ProcessingSettings, ProcessingSettingsStore, None] = None,
        *,
        classifier: Optional[ChannelClassifier] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._lock = threading.Lock()
        self._streams: Dict[str, Stream] = dict(streams)
        self._ready: Set[str] = set()
        self._unusable: Set[str] = set()
        self._classifier = classifier
        self._clock = clock
        if isinstance(settings, ProcessingSettingsStore):
            self._settings_store = settings
        else:
            self._settings_store = ProcessingSettingsStore(settings)
        self._unsubscribe = self._settings_store.subscribe(self._apply_settings, replay=False)

    @property
    def settings_store(self) -> ProcessingSettingsStore:
        return self._settings_store

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._streams)

    def get(self, name: str) -> Optional[Stream]:
        with self._lock:
            return self._streams.get(name)

    def __len__(self) -> int:
        with self._lock:
            return len(self._streams)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._streams

    def init_stream(self, srcname: str) -> Optional[Stream]:
        """Return the initialised stream for ``srcname``, or None if unusable."""
        with self._lock:
            stream = self._streams.get(srcname)
            if stream is None or srcname in self._unusable:
                return None
            if srcname in self._ready:
                return stream
            settings = self._settings_store.get()
            try:
                stream.init(srcname, settings.probation, settings.level, self._classifier)
            except (ClassificationError, ValidationError) as exc:
                logger.warning("[%s] unable to initialise stream: %s", srcname, exc)
                self._unusable.add(srcname)
                return None
            self._ready.add(srcname)
            logger.info("[%s] initialised stream %s", srcname, stream.name)
            return stream

    def process(
        self,
        source: str,
        srcname: str,
        starttime: TimeLike,
        samples: Union[Sequence[int], np.ndarray],
        *,
        now: Optional[TimeLike] = None,
    ) -> Optional[ImpactMessage]:
        """Process one block and return the event to deliver, if any."""
        stream = self.init_stream(srcname)
        if stream is None:
            logger.debug("[%s] skipping block for unknown or unusable stream", srcname)
            return None

        try:
            message = stream.process_samples(source, srcname, starttime, samples)
        except ValidationError as exc:
            logger.warning("[%s] skipping block: %s", srcname, exc)
            return None

        if now is not None:
            flush_time = as_utc(now)
        elif self._clock is not None:
            flush_time = self._clock()
        else:
            flush_time = None

        if not stream.flush(self._settings_store.get().interval, message.mmi, flush_time):
            return None
        return message

    def process_packet(self, packet: Packet, *, now: Optional[TimeLike] = None) -> Optional[ImpactMessage]:
        return self.process(packet.source, packet.srcname, packet.start_time, packet.samples, now=now)

    def close(self) -> None:
        self._unsubscribe()

    def _apply_settings(self, settings: ProcessingSettings) -> None:
        with self._lock:
            for name in self._ready:
                stream = self._streams[name]
                stream.probation = settings.probation
                stream.level = settings.level


__all__ = ["StreamRegistry"]
