"""
Notifications Layer

Persisted launch reminders and the delivery port they fire through.
"""

from .delivery import NotificationDelivery, AsyncioNotificationDelivery, PermissionState
from .scheduler import NotificationScheduler, ScheduleStatus, ScheduleResult, STORAGE_KEY

__all__ = [
    'NotificationDelivery', 'AsyncioNotificationDelivery', 'PermissionState',
    'NotificationScheduler', 'ScheduleStatus', 'ScheduleResult', 'STORAGE_KEY',
]
