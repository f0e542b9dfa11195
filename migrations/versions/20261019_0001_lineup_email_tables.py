"""Create the lineup email tables.

The schedule and settings tables usually already exist because the admin
application owns them, so every table is created only when missing.
"""

from alembic import op
import sqlalchemy as sa

revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None

BOOLEAN_DEFAULT_FALSE = sa.text("false")


def _has_table(name: str) -> bool:
    return sa.inspect(op.get_bind()).has_table(name)


def _create_schedule_tables() -> None:
    if not _has_table("shows"):
        op.create_table(
            "shows",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("date", sa.Date(), nullable=True),
            sa.Column("time", sa.Time(), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
        )
        op.create_index("ix_shows_date", "shows", ["date"])

    if not _has_table("show_items"):
        op.create_table(
            "show_items",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column(
                "show_id",
                sa.String(36),
                sa.ForeignKey("shows.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("name", sa.String(255), nullable=True),
            sa.Column("title", sa.String(255), nullable=True),
            sa.Column("details", sa.Text(), nullable=True),
            sa.Column("is_break", sa.Boolean(), nullable=False, server_default=BOOLEAN_DEFAULT_FALSE),
            sa.Column("is_note", sa.Boolean(), nullable=False, server_default=BOOLEAN_DEFAULT_FALSE),
            sa.Column("is_divider", sa.Boolean(), nullable=False, server_default=BOOLEAN_DEFAULT_FALSE),
        )
        op.create_index("ix_show_items_show_id", "show_items", ["show_id"])

    if not _has_table("interviewees"):
        op.create_table(
            "interviewees",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "item_id",
                sa.String(36),
                sa.ForeignKey("show_items.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("title", sa.String(255), nullable=True),
        )
        op.create_index("ix_interviewees_item_id", "interviewees", ["item_id"])


def _create_email_tables() -> None:
    if not _has_table("email_settings"):
        op.create_table(
            "email_settings",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("email_method", sa.String(32), nullable=False, server_default="smtp"),
            sa.Column("sender_email", sa.String(255), nullable=True),
            sa.Column("sender_name", sa.String(255), nullable=True),
            sa.Column("subject_template", sa.Text(), nullable=True),
            sa.Column("body_template", sa.Text(), nullable=True),
            sa.Column("smtp_host", sa.String(255), nullable=True),
            sa.Column("smtp_port", sa.Integer(), nullable=True),
            sa.Column("smtp_user", sa.String(255), nullable=True),
            sa.Column("smtp_password", sa.String(255), nullable=True),
            sa.Column("mailgun_api_key", sa.String(255), nullable=True),
            sa.Column("mailgun_domain", sa.String(255), nullable=True),
            sa.Column("is_eu_region", sa.Boolean(), nullable=False, server_default=BOOLEAN_DEFAULT_FALSE),
        )

    if not _has_table("email_recipients"):
        op.create_table(
            "email_recipients",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("email", sa.String(255), nullable=False, unique=True),
        )

    if not _has_table("show_email_logs"):
        op.create_table(
            "show_email_logs",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "show_id",
                sa.String(36),
                sa.ForeignKey("shows.id", ondelete="CASCADE"),
                nullable=False,
                unique=True,
            ),
            sa.Column("success", sa.Boolean(), nullable=False, server_default=BOOLEAN_DEFAULT_FALSE),
            sa.Column("error_message", sa.Text(), nullable=True),
            sa.Column(
                "sent_at",
                sa.DateTime(timezone=True),
                nullable=False,
                server_default=sa.func.now(),
            ),
        )
        op.create_index("ix_show_email_logs_sent_at", "show_email_logs", ["sent_at"])

    if not _has_table("dispatch_locks"):
        op.create_table(
            "dispatch_locks",
            sa.Column("lock_key", sa.String(128), primary_key=True),
            sa.Column("holder", sa.String(255), nullable=False),
            sa.Column("acquired_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index("ix_dispatch_locks_expires_at", "dispatch_locks", ["expires_at"])


def upgrade() -> None:
    _create_schedule_tables()
    _create_email_tables()


def downgrade() -> None:
    op.drop_index("ix_dispatch_locks_expires_at", table_name="dispatch_locks")
    op.drop_table("dispatch_locks")
