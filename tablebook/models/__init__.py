"""Database models"""

from tablebook.models.audit import AuditLog
from tablebook.models.guest import Guest
from tablebook.models.notification import NotificationLog
from tablebook.models.payment import PaymentStatus, PaymentType, ReservationPayment
from tablebook.models.reservation import Reservation, ReservationSource, ReservationStatus
from tablebook.models.schedule import DayOverride
from tablebook.models.settings import RestaurantSettings
from tablebook.models.table import RestaurantTable
from tablebook.models.waitlist import WaitlistEntry, WaitlistStatus

__all__ = [
    "AuditLog",
    "Guest",
    "NotificationLog",
    "PaymentStatus",
    "PaymentType",
    "ReservationPayment",
    "Reservation",
    "ReservationSource",
    "ReservationStatus",
    "DayOverride",
    "RestaurantSettings",
    "RestaurantTable",
    "WaitlistEntry",
    "WaitlistStatus",
]
