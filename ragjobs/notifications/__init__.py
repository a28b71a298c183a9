from ragjobs.notifications.scheduler import ManualScheduler, Scheduler, TimerScheduler
from ragjobs.notifications.service import NotificationCenter
from ragjobs.notifications.types import Notification, Severity, notification_to_dict

__all__ = [
    "ManualScheduler",
    "Notification",
    "NotificationCenter",
    "Scheduler",
    "Severity",
    "TimerScheduler",
    "notification_to_dict",
]
