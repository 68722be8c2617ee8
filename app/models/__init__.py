"""Database models."""

from app.models.appointments import appointments
from app.models.base import metadata
from app.models.clinics import availability, blackout_dates, clinics, practitioners
from app.models.leads import leads
from app.models.notifications import whatsapp_messages
from app.models.patients import patients
from app.models.recalls import recall_notifications, recalls
from app.models.users import users

__all__ = [
    "appointments",
    "availability",
    "blackout_dates",
    "clinics",
    "leads",
    "metadata",
    "patients",
    "practitioners",
    "recall_notifications",
    "recalls",
    "users",
    "whatsapp_messages",
]
