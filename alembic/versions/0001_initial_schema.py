"""Initial turnover schema."""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

ENUMS = {
    "taskstatus": (
        "pending",
        "assigned",
        "in_progress",
        "completed",
        "approved",
        "failed",
        "cancelled",
    ),
    "tasktype": (
        "pre_arrival_prep",
        "checkin_informational",
        "checkout",
        "cleaning",
        "inspection",
        "maintenance",
    ),
    "taskpriority": ("low", "medium", "high", "urgent"),
    "timelinephase": ("pre_arrival", "occupied", "checkout", "cleaning", "inspection", "ready"),
    "bookingstatus": ("confirmed", "checked_out", "ready"),
    "jobstatus": (
        "pending",
        "offered",
        "offer_expired",
        "accepted",
        "started",
        "completed",
        "stuck_accepted",
        "stuck_started",
    ),
    "offerstatus": ("sent", "accepted", "expired"),
    "alerttype": (
        "timeout-monitor-failure",
        "stuck-job-alert",
        "issue-found",
        "timeline-complete",
    ),
    "alertseverity": ("low", "medium", "high", "critical"),
    "staffstatus": ("active", "inactive"),
}


def _enum(name: str) -> postgresql.ENUM:
    # Types are created up front; tables only reference them
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def _ts(name: str, nullable: bool = True) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    """Create turnover tables and enums."""
    bind = op.get_bind()
    for name, values in ENUMS.items():
        sa.Enum(*values, name=name).create(bind, checkfirst=True)

    op.create_table(
        "properties",
        sa.Column("property_id", sa.String(length=255), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("blocked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("blocked_reason", sa.Text(), nullable=True),
        _ts("blocked_at"),
        _ts("updated_at", nullable=False),
    )

    op.create_table(
        "bookings",
        sa.Column("booking_id", sa.String(length=255), primary_key=True),
        sa.Column("property_id", sa.String(length=255), nullable=False),
        sa.Column("property_name", sa.String(length=255), nullable=True),
        sa.Column("guest_name", sa.String(length=255), nullable=True),
        _ts("check_in", nullable=False),
        _ts("check_out", nullable=False),
        sa.Column("status", _enum("bookingstatus"), nullable=False, server_default="confirmed"),
        _ts("checked_out_at"),
        sa.Column("checked_out_by", sa.String(length=64), nullable=True),
        _ts("ready_at"),
        sa.Column("inspection_passed", sa.Boolean(), nullable=True),
        _ts("updated_at", nullable=False),
    )
    op.create_index("ix_bookings_property_id", "bookings", ["property_id"])

    op.create_table(
        "operational_tasks",
        sa.Column("task_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("booking_id", sa.String(length=255), nullable=False),
        sa.Column("property_id", sa.String(length=255), nullable=False),
        sa.Column("property_name", sa.String(length=255), nullable=True),
        sa.Column("guest_name", sa.String(length=255), nullable=True),
        sa.Column("task_type", _enum("tasktype"), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("priority", _enum("taskpriority"), nullable=False, server_default="medium"),
        sa.Column("status", _enum("taskstatus"), nullable=False, server_default="pending"),
        _ts("scheduled_at", nullable=False),
        sa.Column("estimated_duration_minutes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("assigned_staff_id", sa.String(length=255), nullable=True),
        sa.Column("assigned_staff_name", sa.String(length=255), nullable=True),
        _ts("assigned_at"),
        sa.Column("depends_on", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("triggers", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("photo_refs", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("checklist_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("completion_notes", sa.Text(), nullable=True),
        sa.Column("issues_found", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("issue_description", sa.Text(), nullable=True),
        sa.Column("resolution_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("source_task_id", postgresql.UUID(as_uuid=True), nullable=True),
        _ts("created_at", nullable=False),
        _ts("updated_at", nullable=False),
        _ts("triggered_at"),
        _ts("started_at"),
        _ts("completed_at"),
        _ts("approved_at"),
        _ts("failed_at"),
        _ts("cancelled_at"),
        sa.Column("created_by", sa.String(length=64), nullable=False),
    )
    op.create_index("idx_tasks_booking", "operational_tasks", ["booking_id", "scheduled_at"])
    op.create_index("idx_tasks_property", "operational_tasks", ["property_id", "scheduled_at"])
    op.create_index(
        "idx_tasks_due",
        "operational_tasks",
        ["task_type", "status", "scheduled_at"],
    )
    op.create_index("idx_tasks_status", "operational_tasks", ["status", "scheduled_at"])

    op.create_table(
        "booking_timelines",
        sa.Column("timeline_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("booking_id", sa.String(length=255), nullable=False, unique=True),
        sa.Column("property_id", sa.String(length=255), nullable=False),
        _ts("check_in", nullable=False),
        _ts("check_out", nullable=False),
        sa.Column("task_ids", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column(
            "current_phase",
            _enum("timelinephase"),
            nullable=False,
            server_default="pre_arrival",
        ),
        sa.Column("completion_percentage", sa.Integer(), nullable=False, server_default="0"),
        _ts("estimated_ready_at"),
        _ts("actual_ready_at"),
        _ts("completed_at"),
        _ts("created_at", nullable=False),
        _ts("updated_at", nullable=False),
    )
    op.create_index("idx_timelines_phase", "booking_timelines", ["current_phase"])

    op.create_table(
        "jobs",
        sa.Column("job_id", sa.String(length=255), primary_key=True),
        sa.Column("property_name", sa.String(length=255), nullable=True),
        sa.Column("status", _enum("jobstatus"), nullable=False, server_default="pending"),
        sa.Column("assigned_staff_id", sa.String(length=255), nullable=True),
        _ts("accepted_at"),
        _ts("started_at"),
        _ts("stuck_at"),
        sa.Column("timeout_reason", sa.String(length=64), nullable=True),
        sa.Column("escalation_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_expired_offer", postgresql.JSONB(), nullable=True),
    )
    op.create_index("idx_jobs_accepted", "jobs", ["status", "accepted_at"])
    op.create_index("idx_jobs_started", "jobs", ["status", "started_at"])

    op.create_table(
        "job_offers",
        sa.Column("offer_id", sa.String(length=255), primary_key=True),
        sa.Column("job_id", sa.String(length=255), nullable=False),
        sa.Column("staff_id", sa.String(length=255), nullable=True),
        sa.Column("status", _enum("offerstatus"), nullable=False, server_default="sent"),
        _ts("sent_at", nullable=False),
        _ts("accepted_at"),
        _ts("expired_at"),
        sa.Column("timeout_reason", sa.String(length=64), nullable=True),
        sa.Column("attempt_number", sa.Integer(), nullable=False, server_default="1"),
    )
    op.create_index("ix_job_offers_job_id", "job_offers", ["job_id"])
    op.create_index("idx_offers_status_sent", "job_offers", ["status", "sent_at"])

    op.create_table(
        "admin_alerts",
        sa.Column("alert_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("alert_type", _enum("alerttype"), nullable=False),
        sa.Column("severity", _enum("alertseverity"), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("context", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column("source", sa.String(length=64), nullable=False),
        sa.Column(
            "requires_immediate_action",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
        sa.Column("resolved", sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts("resolved_at"),
        sa.Column("resolved_by", sa.String(length=255), nullable=True),
        _ts("created_at", nullable=False),
    )
    op.create_index("idx_alerts_open", "admin_alerts", ["resolved", "created_at"])
    op.create_index("idx_alerts_type", "admin_alerts", ["alert_type", "created_at"])

    op.create_table(
        "notifications",
        sa.Column("notification_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("recipient_id", sa.String(length=255), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("channels", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("priority", sa.String(length=16), nullable=False),
        sa.Column("related_task_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("related_booking_id", sa.String(length=255), nullable=True),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts("created_at", nullable=False),
    )
    op.create_index(
        "idx_notifications_recipient",
        "notifications",
        ["recipient_id", "created_at"],
    )

    op.create_table(
        "staff_accounts",
        sa.Column("staff_id", sa.String(length=255), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("skills", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("status", _enum("staffstatus"), nullable=False, server_default="active"),
        sa.Column("available", sa.Boolean(), nullable=False, server_default=sa.true()),
    )


def downgrade() -> None:
    """Drop all tables and enums."""
    op.drop_table("staff_accounts")

    op.drop_index("idx_notifications_recipient", table_name="notifications")
    op.drop_table("notifications")

    op.drop_index("idx_alerts_type", table_name="admin_alerts")
    op.drop_index("idx_alerts_open", table_name="admin_alerts")
    op.drop_table("admin_alerts")

    op.drop_index("idx_offers_status_sent", table_name="job_offers")
    op.drop_index("ix_job_offers_job_id", table_name="job_offers")
    op.drop_table("job_offers")

    op.drop_index("idx_jobs_started", table_name="jobs")
    op.drop_index("idx_jobs_accepted", table_name="jobs")
    op.drop_table("jobs")

    op.drop_index("idx_timelines_phase", table_name="booking_timelines")
    op.drop_table("booking_timelines")

    op.drop_index("idx_tasks_status", table_name="operational_tasks")
    op.drop_index("idx_tasks_due", table_name="operational_tasks")
    op.drop_index("idx_tasks_property", table_name="operational_tasks")
    op.drop_index("idx_tasks_booking", table_name="operational_tasks")
    op.drop_table("operational_tasks")

    op.drop_index("ix_bookings_property_id", table_name="bookings")
    op.drop_table("bookings")

    op.drop_table("properties")

    bind = op.get_bind()
    for name in reversed(list(ENUMS)):
        sa.Enum(name=name).drop(bind, checkfirst=True)
