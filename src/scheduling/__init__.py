from .manager import ScheduledRideManager

__all__ = ["ScheduledRideManager"]
