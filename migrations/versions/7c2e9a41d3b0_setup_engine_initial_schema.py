"""setup_engine_initial_schema

Team rooms, setup aggregate, vote ledger, confirmed outcomes and the
per-subject detail tables written on confirmation.

Revision ID: 7c2e9a41d3b0
Revises:
Create Date: 2026-10-19 09:30:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "7c2e9a41d3b0"
down_revision = None
branch_labels = None
depends_on = None


def _ts(name, nullable=True):
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    if "team_rooms" not in existing_tables:
        op.create_table(
            "team_rooms",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=100), nullable=False),
            sa.Column("description", sa.String(length=500), nullable=True),
            _ts("deadline", nullable=False),
            sa.Column("workflow", sa.String(length=20), nullable=False, server_default="PENDING"),
            sa.Column("lifecycle", sa.String(length=20), nullable=False, server_default="ACTIVE"),
            _ts("created_at"),
            _ts("updated_at"),
            sa.PrimaryKeyConstraint("id"),
        )

    if "team_members" not in existing_tables:
        op.create_table(
            "team_members",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("team_room_id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=100), nullable=True),
            sa.Column("role", sa.String(length=20), nullable=False, server_default="MEMBER"),
            _ts("created_at"),
            sa.ForeignKeyConstraint(["team_room_id"], ["team_rooms.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("team_room_id", "user_id", name="uq_team_member_room_user"),
        )
        op.create_index("ix_team_members_team_room_id", "team_members", ["team_room_id"])
        op.create_index("ix_team_members_user_id", "team_members", ["user_id"])

    if "team_room_setups" not in existing_tables:
        op.create_table(
            "team_room_setups",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("team_room_id", sa.Integer(), nullable=False),
            _ts("deadline", nullable=False),
            sa.Column("tool_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("rule_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("meeting_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
            _ts("completed_at"),
            _ts("created_at", nullable=False),
            sa.ForeignKeyConstraint(["team_room_id"], ["team_rooms.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("team_room_id"),
        )
        op.create_index("ix_team_room_setups_deadline", "team_room_setups", ["deadline"])

    if "rule_templates" not in existing_tables:
        op.create_table(
            "rule_templates",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("content", sa.String(length=255), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.PrimaryKeyConstraint("id"),
        )

    if "vote_ballots" not in existing_tables:
        op.create_table(
            "vote_ballots",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("subject", sa.String(length=20), nullable=False),
            sa.Column("team_room_id", sa.Integer(), nullable=False),
            sa.Column("member_id", sa.Integer(), nullable=False),
            _ts("submitted_at", nullable=False),
            sa.ForeignKeyConstraint(["team_room_id"], ["team_rooms.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["member_id"], ["team_members.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("subject", "team_room_id", "member_id",
                                name="uq_vote_ballot_subject_room_member"),
        )
        op.create_index("ix_vote_ballots_team_room_id", "vote_ballots", ["team_room_id"])

    if "member_tool_votes" not in existing_tables:
        op.create_table(
            "member_tool_votes",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("ballot_id", sa.Integer(), nullable=False),
            sa.Column("team_room_id", sa.Integer(), nullable=False),
            sa.Column("member_id", sa.Integer(), nullable=False),
            sa.Column("category_id", sa.Integer(), nullable=False),
            sa.Column("tool_id", sa.Integer(), nullable=False),
            sa.ForeignKeyConstraint(["ballot_id"], ["vote_ballots.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["team_room_id"], ["team_rooms.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("ballot_id", "category_id", "tool_id",
                                name="uq_tool_vote_ballot_category_tool"),
        )
        op.create_index("ix_member_tool_votes_ballot_id", "member_tool_votes", ["ballot_id"])
        op.create_index("ix_tool_vote_room_category", "member_tool_votes",
                        ["team_room_id", "category_id"])

    if "member_rule_votes" not in existing_tables:
        op.create_table(
            "member_rule_votes",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("team_room_id", sa.Integer(), nullable=False),
            sa.Column("member_id", sa.Integer(), nullable=False),
            sa.Column("rule_template_id", sa.Integer(), nullable=False),
            sa.Column("is_agree", sa.Boolean(), nullable=False),
            _ts("created_at"),
            _ts("updated_at"),
            sa.ForeignKeyConstraint(["team_room_id"], ["team_rooms.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["member_id"], ["team_members.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["rule_template_id"], ["rule_templates.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("team_room_id", "member_id", "rule_template_id",
                                name="uq_rule_vote_room_member_rule"),
        )
        op.create_index("ix_member_rule_votes_team_room_id", "member_rule_votes", ["team_room_id"])

    if "meeting_availabilities" not in existing_tables:
        day_columns = [
            sa.Column(f"availability_{day}", sa.BigInteger(), nullable=False, server_default="0")
            for day in ("mon", "tue", "wed", "thu", "fri", "sat", "sun")
        ]
        op.create_table(
            "meeting_availabilities",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("ballot_id", sa.Integer(), nullable=False),
            sa.Column("team_room_id", sa.Integer(), nullable=False),
            sa.Column("member_id", sa.Integer(), nullable=False),
            *day_columns,
            sa.Column("preferred_block", sa.String(length=20), nullable=False),
            sa.ForeignKeyConstraint(["ballot_id"], ["vote_ballots.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["team_room_id"], ["team_rooms.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("ballot_id"),
        )
        op.create_index("ix_meeting_availabilities_team_room_id", "meeting_availabilities",
                        ["team_room_id"])

    if "confirmed_outcomes" not in existing_tables:
        op.create_table(
            "confirmed_outcomes",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("subject", sa.String(length=20), nullable=False),
            sa.Column("team_room_id", sa.Integer(), nullable=False),
            sa.Column("payload", sa.JSON(), nullable=False),
            _ts("confirmed_at", nullable=False),
            sa.ForeignKeyConstraint(["team_room_id"], ["team_rooms.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("subject", "team_room_id", name="uq_confirmed_outcome_subject_room"),
        )
        op.create_index("ix_confirmed_outcomes_team_room_id", "confirmed_outcomes", ["team_room_id"])

    if "team_tool_proposals" not in existing_tables:
        op.create_table(
            "team_tool_proposals",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("team_room_id", sa.Integer(), nullable=False),
            sa.Column("category_id", sa.Integer(), nullable=False),
            sa.Column("tool_id", sa.Integer(), nullable=False),
            sa.Column("proposer_member_id", sa.Integer(), nullable=True),
            sa.Column("decision", sa.String(length=20), nullable=False, server_default="PENDING"),
            _ts("decided_at"),
            _ts("created_at"),
            sa.ForeignKeyConstraint(["team_room_id"], ["team_rooms.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["proposer_member_id"], ["team_members.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_tool_proposal_room_decision", "team_tool_proposals",
                        ["team_room_id", "decision"])

    if "team_tools" not in existing_tables:
        op.create_table(
            "team_tools",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("team_room_id", sa.Integer(), nullable=False),
            sa.Column("category_id", sa.Integer(), nullable=False),
            sa.Column("tool_id", sa.Integer(), nullable=False),
            sa.Column("vote_count", sa.Integer(), nullable=False, server_default="0"),
            _ts("created_at"),
            sa.ForeignKeyConstraint(["team_room_id"], ["team_rooms.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("team_room_id", "category_id", "tool_id",
                                name="uq_team_tool_room_category_tool"),
        )
        op.create_index("ix_team_tools_team_room_id", "team_tools", ["team_room_id"])

    if "team_rules" not in existing_tables:
        op.create_table(
            "team_rules",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("team_room_id", sa.Integer(), nullable=False),
            sa.Column("rule_template_id", sa.Integer(), nullable=True),
            sa.Column("content", sa.String(length=255), nullable=False),
            sa.Column("agree_count", sa.Integer(), nullable=False, server_default="0"),
            _ts("created_at"),
            sa.ForeignKeyConstraint(["team_room_id"], ["team_rooms.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["rule_template_id"], ["rule_templates.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_team_rules_team_room_id", "team_rules", ["team_room_id"])

    if "meeting_series" not in existing_tables:
        op.create_table(
            "meeting_series",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("team_room_id", sa.Integer(), nullable=False),
            sa.Column("meeting_type", sa.String(length=30), nullable=False,
                      server_default="INITIAL_REGULAR"),
            sa.Column("day_of_week", sa.String(length=3), nullable=False),
            sa.Column("start_time", sa.Time(), nullable=False),
            sa.Column("duration_minutes", sa.Integer(), nullable=False, server_default="60"),
            _ts("created_at"),
            sa.ForeignKeyConstraint(["team_room_id"], ["team_rooms.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_meeting_series_team_room_id", "meeting_series", ["team_room_id"])

    if "meetings" not in existing_tables:
        op.create_table(
            "meetings",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("series_id", sa.Integer(), nullable=False),
            sa.Column("team_room_id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=100), nullable=False),
            _ts("start_at", nullable=False),
            sa.Column("duration_minutes", sa.Integer(), nullable=False, server_default="60"),
            sa.ForeignKeyConstraint(["series_id"], ["meeting_series.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["team_room_id"], ["team_rooms.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_meetings_series_id", "meetings", ["series_id"])
        op.create_index("ix_meetings_team_room_id", "meetings", ["team_room_id"])

    if "scheduled_jobs" not in existing_tables:
        op.create_table(
            "scheduled_jobs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("job_name", sa.String(length=100), nullable=False),
            sa.Column("description", sa.String(length=500), nullable=True),
            sa.Column("interval_seconds", sa.Integer(), nullable=False, server_default="60"),
            sa.Column("status", sa.String(length=20), nullable=True),
            sa.Column("is_enabled", sa.Boolean(), nullable=True),
            sa.Column("lease_owner", sa.String(length=100), nullable=True),
            _ts("lease_expires_at"),
            _ts("last_run_at"),
            sa.Column("last_run_status", sa.String(length=20), nullable=True),
            sa.Column("last_run_duration_ms", sa.Integer(), nullable=True),
            sa.Column("last_run_result", sa.JSON(), nullable=True),
            sa.Column("run_count", sa.Integer(), nullable=True),
            sa.Column("error_count", sa.Integer(), nullable=True),
            sa.Column("last_error", sa.Text(), nullable=True),
            _ts("created_at"),
            _ts("updated_at"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("job_name"),
        )

    if "notifications" not in existing_tables:
        op.create_table(
            "notifications",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("team_room_id", sa.Integer(), nullable=True),
            sa.Column("recipient", sa.String(length=150), nullable=True),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("message", sa.Text(), nullable=True),
            sa.Column("category", sa.String(length=30), nullable=True),
            sa.Column("severity", sa.String(length=20), nullable=True),
            sa.Column("entity_type", sa.String(length=30), nullable=True),
            sa.Column("entity_id", sa.Integer(), nullable=True),
            sa.Column("is_read", sa.Boolean(), nullable=True),
            _ts("read_at"),
            _ts("created_at"),
            sa.ForeignKeyConstraint(["team_room_id"], ["team_rooms.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_notifications_team_room_id", "notifications", ["team_room_id"])
        op.create_index("ix_notifications_recipient", "notifications", ["recipient"])


def downgrade():
    for table in (
        "notifications",
        "scheduled_jobs",
        "meetings",
        "meeting_series",
        "team_rules",
        "team_tools",
        "team_tool_proposals",
        "confirmed_outcomes",
        "meeting_availabilities",
        "member_rule_votes",
        "member_tool_votes",
        "vote_ballots",
        "rule_templates",
        "team_room_setups",
        "team_members",
        "team_rooms",
    ):
        op.drop_table(table)
