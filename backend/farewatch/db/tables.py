"""
Single source of truth for database tables that exist after migrations.

Use these names when writing raw SQL (e.g. TRUNCATE). alembic/env.py asserts that the
registered models match this list.
"""
ALL_TABLE_NAMES = (
    "watches",
    "price_samples",
    "reservations",
    "user_notifications",
    "push_tokens",
)

# Tables cleared when resetting watch state (TRUNCATE). Reservations are kept.
WATCH_TABLE_NAMES = (
    "price_samples",
    "watches",
)
