"""Initial watch tables: watches, price_samples, reservations, user_notifications, push_tokens.

- watches: one row per watched itinerary; legs / booking_refs / passengers as JSONB.
- price_samples: append-only audit of every observed price (no FK; survives watch deletion).
- reservations: holds made by auto-hold; code unique, superseded_by links re-holds.
- user_notifications: in-app feed per owner; metadata JSONB per kind.
- push_tokens: APNs device tokens per owner.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_JSON = sa.JSON().with_variant(JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        "watches",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("provider", sa.String(8), nullable=False),
        sa.Column("legs", _JSON, nullable=False),
        sa.Column("is_round_trip", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("check_interval_seconds", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("auto_hold_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_checked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("current_price", sa.Integer(), nullable=True),
        sa.Column("booking_refs", _JSON, nullable=True),
        sa.Column("prior_reservation_code", sa.String(6), nullable=True),
        sa.Column("passengers", _JSON, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_watches_owner_id", "watches", ["owner_id"], unique=False)
    op.create_index("ix_watches_is_active", "watches", ["is_active"], unique=False)

    op.create_table(
        "price_samples",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("watch_id", sa.String(36), nullable=False),
        sa.Column("observed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("persisted", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_price_samples_watch_id", "price_samples", ["watch_id"], unique=False)

    op.create_table(
        "reservations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("code", sa.String(16), nullable=False),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("provider", sa.String(8), nullable=False),
        sa.Column("source_watch_id", sa.String(36), nullable=True),
        sa.Column("itinerary", _JSON, nullable=False),
        sa.Column("passengers", _JSON, nullable=False),
        sa.Column("price", sa.Integer(), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="holding"),
        sa.Column("superseded_by", sa.String(16), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_reservations_code", "reservations", ["code"], unique=True)
    op.create_index("ix_reservations_owner_id", "reservations", ["owner_id"], unique=False)
    op.create_index("ix_reservations_source_watch_id", "reservations", ["source_watch_id"], unique=False)

    op.create_table(
        "user_notifications",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("recipient_id", sa.String(64), nullable=False),
        sa.Column("watch_id", sa.String(36), nullable=True),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("metadata", _JSON, nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_user_notifications_recipient_read_created",
        "user_notifications",
        ["recipient_id", "read_at", "created_at"],
        unique=False,
        postgresql_ops={"created_at": "DESC"},
    )
    op.create_index("ix_user_notifications_recipient_id", "user_notifications", ["recipient_id"], unique=False)
    op.create_index("ix_user_notifications_watch_id", "user_notifications", ["watch_id"], unique=False)
    op.create_index("ix_user_notifications_type", "user_notifications", ["type"], unique=False)

    op.create_table(
        "push_tokens",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("device_token", sa.String(256), nullable=False),
        sa.Column("platform", sa.String(16), nullable=False, server_default="ios"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_push_tokens_owner_id", "push_tokens", ["owner_id"], unique=False)
    op.create_index("ix_push_tokens_device_token", "push_tokens", ["device_token"], unique=True)


def downgrade() -> None:
    op.drop_index("ix_push_tokens_device_token", table_name="push_tokens")
    op.drop_index("ix_push_tokens_owner_id", table_name="push_tokens")
    op.drop_table("push_tokens")
    op.drop_index("ix_user_notifications_type", table_name="user_notifications")
    op.drop_index("ix_user_notifications_watch_id", table_name="user_notifications")
    op.drop_index("ix_user_notifications_recipient_id", table_name="user_notifications")
    op.drop_index("ix_user_notifications_recipient_read_created", table_name="user_notifications")
    op.drop_table("user_notifications")
    op.drop_index("ix_reservations_source_watch_id", table_name="reservations")
    op.drop_index("ix_reservations_owner_id", table_name="reservations")
    op.drop_index("ix_reservations_code", table_name="reservations")
    op.drop_table("reservations")
    op.drop_index("ix_price_samples_watch_id", table_name="price_samples")
    op.drop_table("price_samples")
    op.drop_index("ix_watches_is_active", table_name="watches")
    op.drop_index("ix_watches_owner_id", table_name="watches")
    op.drop_table("watches")
