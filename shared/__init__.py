"""
Data structures shared by the core pipeline and its hosts.
"""

from .models import EPOCH, ImpactMessage, Packet

__all__ = ["EPOCH", "ImpactMessage", "Packet"]
