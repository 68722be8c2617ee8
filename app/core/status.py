"""Appointment status vocabulary shared by the dashboard and the database."""

# Statuses shown on the dashboard, in display order
UI_STATUSES = (
    "scheduled",
    "confirmed",
    "checked_in",
    "completed",
    "no_show",
    "cancelled",
)

STATUS_LABELS = {
    "scheduled": "Scheduled",
    "confirmed": "Confirmed",
    "checked_in": "Checked-in",
    "completed": "Completed",
    "no_show": "No Show",
    "cancelled": "Cancelled",
}

# Values allowed by the appointments_status_check constraint
DB_STATUSES = (
    "booked",
    "confirmed",
    "checked_in",
    "completed",
    "no_show",
    "cancelled",
)

REMINDER_STATUSES = ("not_scheduled", "scheduled", "sent", "failed")
CONFIRMATION_STATUSES = ("unconfirmed", "confirmed", "cancelled")

_ALIASES = {
    "noshow": "no_show",
    "no show": "no_show",
    "checked in": "checked_in",
    "checkedin": "checked_in",
    "booked": "scheduled",
}


def _clean(value: object) -> str:
    return str(value or "").lower().strip().replace("-", "_")


def normalize_ui_status(value: object) -> str:
    """Map free-form input onto a dashboard status; unknown input is ``scheduled``."""
    cleaned = _clean(value)
    if not cleaned:
        return "scheduled"
    cleaned = _ALIASES.get(cleaned, cleaned)
    cleaned = _ALIASES.get(cleaned.replace("_", " "), cleaned)
    return cleaned if cleaned in UI_STATUSES else "scheduled"


def to_db_status(value: object) -> str:
    """Dashboard (or loosely spelled) status to the stored value."""
    ui = normalize_ui_status(value)
    return "booked" if ui == "scheduled" else ui


def to_ui_status(value: object) -> str:
    """Stored status to the dashboard value; anything unknown reads as ``scheduled``."""
    cleaned = _clean(value)
    if cleaned not in DB_STATUSES:
        return "scheduled"
    return "scheduled" if cleaned == "booked" else cleaned


def status_label(value: object) -> str:
    """Human label for a stored or dashboard status."""
    return STATUS_LABELS[to_ui_status(to_db_status(value))]
