"""Timing module: delay models and timing analysis."""

from .delay_model import PlaceDelayModel, ManhattanDelayModel, DeltaDelayModel
from .analyzer import TimingAnalyzer, GraphTimingAnalyzer

__all__ = [
    "PlaceDelayModel",
    "ManhattanDelayModel",
    "DeltaDelayModel",
    "TimingAnalyzer",
    "GraphTimingAnalyzer"
]
