"""Initial schema with PostGIS extension, stations and the charge ledger.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from geoalchemy2 import Geometry


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Enable PostGIS extension
    op.execute("CREATE EXTENSION IF NOT EXISTS postgis")

    # ── stations ──────────────────────────────────────────────────────
    op.create_table(
        "stations",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("address", sa.String(400), nullable=False, server_default=""),
        sa.Column("location", Geometry("POINT", srid=4326), nullable=True),
        sa.Column("lat", sa.Float, nullable=False),
        sa.Column("lng", sa.Float, nullable=False),
        sa.Column("wait_time_minutes", sa.Integer, nullable=True),
        sa.Column("available_spots", sa.Integer, nullable=True),
        sa.Column("total_spots", sa.Integer, nullable=True),
        sa.Column("max_power_kw", sa.Float, nullable=True),
        sa.Column(
            "virtual_car", sa.Boolean, nullable=False, server_default=sa.false()
        ),
        sa.Column(
            "is_active", sa.Boolean, nullable=False, server_default=sa.true()
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "idx_stations_location",
        "stations",
        ["location"],
        postgresql_using="gist",
    )
    op.create_index("idx_stations_active", "stations", ["is_active"])

    # ── trip_charges ──────────────────────────────────────────────────
    op.create_table(
        "trip_charges",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column(
            "kind",
            sa.Enum("STARTING_FARE", "USAGE", name="chargekind"),
            nullable=False,
        ),
        sa.Column("amount_cents", sa.Integer, nullable=False),
        sa.Column("success", sa.Boolean, nullable=False),
        sa.Column("transaction_id", sa.String(128), nullable=True),
        sa.Column("card_last4", sa.String(4), nullable=True),
        sa.Column("error", sa.String(500), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_trip_charges_user", "trip_charges", ["user_id"])
    op.create_index("idx_trip_charges_kind", "trip_charges", ["kind"])


def downgrade() -> None:
    op.drop_table("trip_charges")
    op.drop_table("stations")
    op.execute("DROP TYPE IF EXISTS chargekind")
