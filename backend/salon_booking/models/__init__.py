"""
SQLAlchemy models
"""
from .account import Account
from .employee import Employee, employee_services
from .service import Service
from .availability import WeeklyAvailabilitySlot, AvailabilityException
from .appointment import Appointment, AppointmentStatus, ACTIVE_STATUSES
from .notification import Notification

__all__ = [
    "Account",
    "Employee",
    "employee_services",
    "Service",
    "WeeklyAvailabilitySlot",
    "AvailabilityException",
    "Appointment",
    "AppointmentStatus",
    "ACTIVE_STATUSES",
    "Notification"
]
