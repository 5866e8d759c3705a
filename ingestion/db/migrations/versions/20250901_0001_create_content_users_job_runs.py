"""Create content, users and job_runs tables"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op


revision = "20250901_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "content",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("video_id", sa.String(length=11), nullable=False),
        sa.Column("youtube_url", sa.String(length=2048), nullable=True),
        sa.Column("source_url", sa.String(length=2048), nullable=True),
        sa.Column("platform", sa.String(length=32), nullable=False, server_default="YouTube"),
        sa.Column("influencer_name", sa.String(length=256), nullable=True),
        sa.Column("episode_title", sa.String(length=512), nullable=True),
        sa.Column("channel_subscribers", sa.Integer(), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("published_label", sa.String(length=64), nullable=True),
        sa.Column("transcript", sa.Text(), nullable=False, server_default=""),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("error", sa.String(length=1024), nullable=True),
        sa.Column("extracted_mentions", sa.JSON(), nullable=False),
        sa.Column("highlights", sa.JSON(), nullable=False),
        sa.Column("blog_article", sa.Text(), nullable=True),
        sa.Column("tweet_thread", sa.Text(), nullable=True),
        sa.Column("video_script", sa.Text(), nullable=True),
        sa.Column("notable_timestamps", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    )
    op.create_index("ix_content_published_at", "content", ["published_at"], unique=False)
    op.create_index("ix_content_video_id", "content", ["video_id"], unique=False)
    op.create_index("ix_content_status", "content", ["status"], unique=False)

    op.create_table(
        "users",
        sa.Column("uid", sa.String(length=128), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("is_pro", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("pro_since", sa.DateTime(timezone=True), nullable=True),
        sa.Column("plan_type", sa.String(length=16), nullable=True),
        sa.Column("stripe_customer_id", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    )
    op.create_index("ix_users_stripe_customer_id", "users", ["stripe_customer_id"], unique=False)

    op.create_table(
        "job_runs",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("stage", sa.String(length=16), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("content_id", sa.String(length=36), nullable=True),
        sa.Column("video_id", sa.String(length=11), nullable=True),
        sa.Column("task_name", sa.String(length=100), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error_message", sa.String(length=512), nullable=True),
        sa.Column("trace_id", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    )
    op.create_index("ix_job_runs_stage_status", "job_runs", ["stage", "status"], unique=False)
    op.create_index("ix_job_runs_trace", "job_runs", ["trace_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_job_runs_trace", table_name="job_runs")
    op.drop_index("ix_job_runs_stage_status", table_name="job_runs")
    op.drop_table("job_runs")
    op.drop_index("ix_users_stripe_customer_id", table_name="users")
    op.drop_table("users")
    op.drop_index("ix_content_status", table_name="content")
    op.drop_index("ix_content_video_id", table_name="content")
    op.drop_index("ix_content_published_at", table_name="content")
    op.drop_table("content")
