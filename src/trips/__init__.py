from .lifecycle import TripLifecycleService

__all__ = ["TripLifecycleService"]
