"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18

Creates the ledger tables: users, events, rsvps (registered responses,
unique per event and user) and event_guests (guest responses).
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

user_role = sa.Enum("user", "admin", name="userrole")
event_status = sa.Enum("active", "cancelled", "completed", name="eventstatus")
rsvp_status = sa.Enum("pending", "confirmed", "declined", name="rsvpstatus")


def upgrade() -> None:
    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(50), nullable=False, unique=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", user_role, nullable=False, server_default="user"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    # --- events ---
    op.create_table(
        "events",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("event_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("location", sa.String(200), nullable=True),
        sa.Column("max_attendees", sa.Integer, nullable=True),
        sa.Column("created_by", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("status", event_status, nullable=False, server_default="active"),
        sa.Column("is_public", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("allow_comments", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("dietary_tracking", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("idx_events_date", "events", ["event_date"])

    # --- rsvps ---
    op.create_table(
        "rsvps",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("event_id", sa.Integer, sa.ForeignKey("events.id"), nullable=False),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("status", rsvp_status, nullable=False, server_default="pending"),
        sa.Column("dietary_restrictions", sa.String(500), nullable=True),
        sa.Column("plus_one", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("plus_one_name", sa.String(100), nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("event_id", "user_id", name="uq_rsvps_event_user"),
    )
    op.create_index("idx_rsvps_event", "rsvps", ["event_id"])
    op.create_index("idx_rsvps_user", "rsvps", ["user_id"])

    # --- event_guests ---
    op.create_table(
        "event_guests",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("event_id", sa.Integer, sa.ForeignKey("events.id"), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("status", rsvp_status, nullable=False, server_default="confirmed"),
        sa.Column("dietary_restrictions", sa.String(500), nullable=True),
        sa.Column("plus_one", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("plus_one_name", sa.String(100), nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("idx_event_guests_event", "event_guests", ["event_id"])


def downgrade() -> None:
    op.drop_index("idx_event_guests_event", table_name="event_guests")
    op.drop_table("event_guests")
    op.drop_index("idx_rsvps_user", table_name="rsvps")
    op.drop_index("idx_rsvps_event", table_name="rsvps")
    op.drop_table("rsvps")
    op.drop_index("idx_events_date", table_name="events")
    op.drop_table("events")
    op.drop_table("users")
    bind = op.get_bind()
    for enum_type in (rsvp_status, event_status, user_role):
        enum_type.drop(bind, checkfirst=True)
