"""
Team Collaboration Setup Engine
Rule models — candidate templates and confirmed team rules.
"""

from datetime import datetime, timezone

from collab.models import db

DEFAULT_RULE_TEMPLATES = (
    "Reply to team messages within 24 hours.",
    "Share progress before every regular meeting.",
    "Let the team know in advance if you will miss a meeting.",
    "Keep shared documents up to date.",
    "Respect agreed deadlines for assigned tasks.",
)


class RuleTemplate(db.Model):
    """A candidate rule every member votes on (agree / disagree)."""

    __tablename__ = "rule_templates"

    id = db.Column(db.Integer, primary_key=True)
    content = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self):
        return {"id": self.id, "content": self.content}


class TeamRule(db.Model):
    """A confirmed rule of a team room (written by the rule track's confirm)."""

    __tablename__ = "team_rules"

    id = db.Column(db.Integer, primary_key=True)
    team_room_id = db.Column(db.Integer, db.ForeignKey("team_rooms.id", ondelete="CASCADE"),
                             nullable=False, index=True)
    rule_template_id = db.Column(db.Integer, db.ForeignKey("rule_templates.id", ondelete="SET NULL"),
                                 nullable=True)
    content = db.Column(db.String(255), nullable=False)
    agree_count = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True),
                           default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "rule_template_id": self.rule_template_id,
            "content": self.content,
            "agree_count": self.agree_count,
        }


def seed_default_rule_templates() -> int:
    """Insert DEFAULT_RULE_TEMPLATES that are not present yet. Caller commits."""
    existing = {t.content for t in RuleTemplate.query.all()}
    created = 0
    for content in DEFAULT_RULE_TEMPLATES:
        if content not in existing:
            db.session.add(RuleTemplate(content=content, is_active=True))
            created += 1
    return created
