"""Schema package exports."""

from .store import BoatDetailsView, LaunchQueueView, MarinaRecord, PushTokenRecord, UserNotificationRecord, UserProfileView

__all__ = ["BoatDetailsView", "LaunchQueueView", "MarinaRecord", "PushTokenRecord", "UserNotificationRecord", "UserProfileView"]
