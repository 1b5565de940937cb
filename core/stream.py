from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence, Union

import numpy as np

from core.classifier import DEFAULT_CLASSIFIER, ChannelClassifier
from core.errors import ClassificationError, ValidationError
from core.filters import HighPass, Integrator
from core.intensity import intensity
from shared.models import EPOCH, ImpactMessage, TimeLike, as_utc

logger = logging.getLogger(__name__)


@dataclass
class Stream:
    """Running filter and noise state for one sensor stream.

    The identity and physical parameters come from configuration; everything
    else is bound by :meth:`init` and mutated by :meth:`process_samples` and
    :meth:`flush`. A stream is not thread-safe.
    """

    name: str = ""
    latitude: float = 0.0
    longitude: float = 0.0
    rate: float = 0.0
    gain: float = 1.0
    q: float = 0.0

    highpass: Optional[HighPass] = field(default=None, repr=False, compare=False)
    integrator: Optional[Integrator] = field(default=None, repr=False, compare=False)

    mmi: int = field(default=0, compare=False)
    last_flush: datetime = field(default=EPOCH, compare=False)
    last: datetime = field(default=EPOCH, compare=False)

    level: int = field(default=0, compare=False)
    probation: timedelta = field(default=timedelta(0), compare=False)

    jailed: bool = field(default=False, compare=False)
    good: datetime = field(default=EPOCH, compare=False)
    bad: datetime = field(default=EPOCH, compare=False)

    @property
    def period(self) -> float:
        return 1.0 / self.rate

    def init(
        self,
        srcname: str,
        probation: timedelta,
        level: int,
        classifier: Optional[ChannelClassifier] = None,
    ) -> None:
        """Bind the stream to a filter configuration based on its channel name."""
        classifier = classifier or DEFAULT_CLASSIFIER

        self.probation = probation
        self.level = int(level)

        self.highpass = None
        self.integrator = None

        if classifier.is_velocity(srcname):
            if self.q > 0.0:
                if not self.gain > 0.0:
                    raise ValidationError("invalid gain")
                self.highpass = HighPass(self.gain, self.q)
        elif classifier.is_acceleration(srcname):
            if self.q > 0.0:
                if not self.rate > 0.0:
                    raise ValidationError("invalid sampling rate")
                if not self.gain > 0.0:
                    raise ValidationError("invalid gain")
                self.highpass = HighPass(self.gain, self.q)
                self.integrator = Integrator(1.0, 1.0 / self.rate, self.q)
        else:
            raise ClassificationError(srcname)

        logger.debug(
            "[%s] initialised stream %s: highpass=%s integrator=%s",
            srcname,
            self.name,
            self.highpass is not None,
            self.integrator is not None,
        )

    def _filter(self, samples: np.ndarray) -> np.ndarray:
        if self.integrator is not None:
            return self.highpass.apply(self.integrator.apply(samples))
        if self.highpass is not None:
            return self.highpass.apply(samples)
        return samples / self.gain

    def _reset(self, samples: np.ndarray) -> None:
        if self.highpass is not None:
            self.highpass.reset()
        if self.integrator is not None:
            self.integrator.reset()

        # run the block backwards first so the filters settle near the signal level
        if self.highpass is not None:
            self._filter(samples[::-1])

        self.bad = EPOCH
        self.good = EPOCH

    def process_samples(
        self,
        source: str,
        srcname: str,
        starttime: TimeLike,
        samples: Union[Sequence[int], np.ndarray],
    ) -> ImpactMessage:
        """Filter one block and return the candidate event for its peak.

        Raises:
            ValidationError: the rate or filter setup is unusable, or the block
                is empty. Stream state is left untouched.
        """
        start = as_utc(starttime)
        message = ImpactMessage(
            source=source,
            latitude=self.latitude,
            longitude=self.longitude,
            time=start,
            mmi=intensity(0.0),
            comment=self.name,
        )

        if not self.rate > 0.0:
            raise ValidationError("invalid sampling rate", message)
        data = np.asarray(samples, dtype=np.float64)
        if data.ndim != 1 or data.size == 0:
            raise ValidationError("no samples given", message)
        if self.integrator is not None and self.highpass is None:
            raise ValidationError("filter not fully initialised", message)
        if self.highpass is None and not self.gain > 0.0:
            raise ValidationError("invalid gain", message)

        period = self.period
        gap = (start - self.last).total_seconds()
        if abs(gap - period) > 0.5 * period:
            logger.info("[%s] reset stream: %s", srcname, start.isoformat())
            self._reset(data)

        filtered = np.abs(self._filter(data))
        index = int(np.argmax(filtered))
        peak = float(filtered[index])
        if peak > 0.0:
            message = ImpactMessage(
                source=message.source,
                latitude=message.latitude,
                longitude=message.longitude,
                time=start + timedelta(seconds=index * period),
                mmi=intensity(peak),
                comment=message.comment,
            )

        self.last = start + timedelta(seconds=(data.size - 1) * period)

        return message

    def flush(self, interval: timedelta, mmi: int, now: Optional[datetime] = None) -> bool:
        """Decide whether a candidate intensity should be sent.

        Repeats of the last sent value are held back for ``interval`` (and
        forever when ``interval`` is zero). Streams that stay above ``level``
        for longer than ``probation`` are jailed until they stay at or below
        it for longer than ``probation``.
        """
        now = as_utc(now) if now is not None else datetime.now(timezone.utc)

        if self.mmi == mmi:
            if interval == timedelta(0):
                return False
            if now - self.last_flush < interval:
                return False

        self.last_flush = now
        self.mmi = mmi

        if self.mmi > self.level:
            if self.last - self.good > self.probation:
                if not self.jailed:
                    logger.info("stream %s jailed at intensity %d", self.name, self.mmi)
                self.jailed = True
            self.bad = self.last
        else:
            if self.last - self.bad > self.probation:
                if self.jailed:
                    logger.info("stream %s released at intensity %d", self.name, self.mmi)
                self.jailed = False
            self.good = self.last

        return not self.jailed


__all__ = ["Stream"]
