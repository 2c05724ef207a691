"""create_forecast_tables

Revision ID: a1c4e7f20b31
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "a1c4e7f20b31"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Apply migration - create anomaly_job, forecast_request_stats and forecast_point."""
    op.create_table(
        "anomaly_job",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("job_id", sa.String(length=64), nullable=False),
        sa.Column("bucket_span_seconds", sa.Integer(), nullable=False),
        sa.Column("state", sa.String(length=20), nullable=False, server_default="closed"),
        # Published by ingestion
        sa.Column("last_bucket_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("model_snapshot", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        # Timestamps
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "state IN ('closed', 'open')",
            name="ck_anomaly_job_valid_state",
        ),
        sa.CheckConstraint(
            "bucket_span_seconds > 0",
            name="ck_anomaly_job_positive_bucket_span",
        ),
    )
    op.create_index(op.f("ix_anomaly_job_job_id"), "anomaly_job", ["job_id"], unique=True)
    op.create_index(op.f("ix_anomaly_job_state"), "anomaly_job", ["state"], unique=False)

    op.create_table(
        "forecast_request_stats",
        sa.Column("job_id", sa.String(length=64), nullable=False),
        sa.Column("forecast_id", sa.String(length=32), nullable=False),
        sa.Column("create_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expiry_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_ms", sa.BigInteger(), nullable=False),
        sa.Column("bucket_span_seconds", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("record_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_message", sa.String(length=2000), nullable=True),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processing_time_ms", sa.Float(), nullable=True),
        sa.PrimaryKeyConstraint("job_id", "forecast_id"),
        sa.CheckConstraint(
            "status IN ('started', 'finished', 'failed')",
            name="ck_forecast_request_stats_valid_status",
        ),
        sa.CheckConstraint(
            "expiry_time IS NULL OR expiry_time >= create_time",
            name="ck_forecast_request_stats_expiry_after_create",
        ),
    )
    # Range scans by the expiry reaper
    op.create_index(
        "ix_forecast_request_stats_expiry_time",
        "forecast_request_stats",
        ["expiry_time"],
        unique=False,
    )

    op.create_table(
        "forecast_point",
        sa.Column("job_id", sa.String(length=64), nullable=False),
        sa.Column("forecast_id", sa.String(length=32), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("bucket_span_seconds", sa.Integer(), nullable=False),
        sa.Column("predicted_value", sa.Float(), nullable=False),
        sa.PrimaryKeyConstraint("job_id", "forecast_id", "timestamp"),
        sa.ForeignKeyConstraint(
            ["job_id", "forecast_id"],
            ["forecast_request_stats.job_id", "forecast_request_stats.forecast_id"],
            ondelete="CASCADE",
            name="fk_forecast_point_stats",
        ),
    )


def downgrade() -> None:
    """Revert migration - drop forecast and job tables."""
    op.drop_table("forecast_point")
    op.drop_index("ix_forecast_request_stats_expiry_time", table_name="forecast_request_stats")
    op.drop_table("forecast_request_stats")
    op.drop_index(op.f("ix_anomaly_job_state"), table_name="anomaly_job")
    op.drop_index(op.f("ix_anomaly_job_job_id"), table_name="anomaly_job")
    op.drop_table("anomaly_job")
