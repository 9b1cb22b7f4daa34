"""Predictive driver positioning."""

from .estimator import DemandEstimator, PositioningSuggestion, ZoneForecast
from .zones import DEFAULT_ZONES, DemandZone

__all__ = [
    "DEFAULT_ZONES",
    "DemandEstimator",
    "DemandZone",
    "PositioningSuggestion",
    "ZoneForecast",
]
