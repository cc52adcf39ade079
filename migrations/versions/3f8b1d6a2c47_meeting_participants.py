"""meeting_participants

One row per team member for every meeting generated from a series.

Revision ID: 3f8b1d6a2c47
Revises: 7c2e9a41d3b0
Create Date: 2026-10-26 14:10:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "3f8b1d6a2c47"
down_revision = "7c2e9a41d3b0"
branch_labels = None
depends_on = None


def upgrade():
    conn = op.get_bind()
    if "meeting_participants" in sa_inspect(conn).get_table_names():
        return
    op.create_table(
        "meeting_participants",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("meeting_id", sa.Integer(), nullable=False),
        sa.Column("member_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["meeting_id"], ["meetings.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["member_id"], ["team_members.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("meeting_id", "member_id", name="uq_meeting_participant"),
    )
    op.create_index("ix_meeting_participants_meeting_id", "meeting_participants", ["meeting_id"])
    op.create_index("ix_meeting_participants_member_id", "meeting_participants", ["member_id"])


def downgrade():
    op.drop_index("ix_meeting_participants_member_id", table_name="meeting_participants")
    op.drop_index("ix_meeting_participants_meeting_id", table_name="meeting_participants")
    op.drop_table("meeting_participants")
