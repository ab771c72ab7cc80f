"""
Centralized constants for the watch scheduler and notifications.

Change job IDs, provider ids or notification copy here instead of scattering literals
across main, the scheduler and the notify service.
"""

# Provider ids (stored in watches.provider)
PROVIDER_VIETJET = "VJ"
PROVIDER_VNA = "VNA"

# Scheduler job IDs. Per-watch timers are WATCH_JOB_PREFIX + watch id.
WATCH_SYNC_JOB_ID = "watch_sync"
WATCH_JOB_PREFIX = "watch:"

# Reservation codes (PNR) are 6 alphanumeric characters
RESERVATION_CODE_LENGTH = 6

# Reservation record status
RESERVATION_STATUS_HOLDING = "holding"
RESERVATION_STATUS_SUPERSEDED = "superseded"

# Provider expiry timestamps ("18:02 17/11/2025") are local to GMT+7
PROVIDER_UTC_OFFSET_HOURS = 7

# Push titles per notification kind. Kinds not listed here are in-app only.
PUSH_TITLES = {
    "price_decreased": "Price dropped",
    "hold_succeeded": "Ticket held",
    "hold_failed": "Auto-hold failed",
    "hold_skipped_already_issued": "Already issued",
}

# Cap for GET /notifications and GET /reservations
LIST_LIMIT = 200
