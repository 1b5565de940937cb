"""Core intensity pipeline: filters, intensity scale and per-stream state."""

from .classifier import ChannelClassifier, RegexChannelClassifier
from .errors import ClassificationError, ConfigError, ImpactError, ValidationError
from .filters import FilterState, HighPass, Integrator
from .intensity import intensity, raw_intensity
from .stream import Stream
from shared.models import ImpactMessage, Packet

__all__ = [
    "ChannelClassifier",
    "RegexChannelClassifier",
    "ImpactError",
    "ConfigError",
    "ClassificationError",
    "ValidationError",
    "FilterState",
    "HighPass",
    "Integrator",
    "intensity",
    "raw_intensity",
    "Stream",
    "ImpactMessage",
    "Packet",
]
