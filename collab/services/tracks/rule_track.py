"""
Rule track — agree / disagree per rule template.

Each vote is ``{"rule_id": <template id>, "agree": true|false}`` and can be
changed until the rules are confirmed. A member counts as voted once every
active template has a vote; only those members are counted at confirm time.
A template is adopted when its agree count reaches a strict majority
(``voted // 2 + 1``).
"""

import logging

from collab.core.exceptions import NotFoundError, ValidationError
from collab.models import db
from collab.models.rule import RuleTemplate, TeamRule
from collab.models.teamroom import SUBJECT_RULE
from collab.services import vote_ledger
from collab.services.tracks.base import SubjectTrack

logger = logging.getLogger(__name__)


def majority_threshold(voted: int) -> int:
    return voted // 2 + 1


class RuleTrack(SubjectTrack):
    subject = SUBJECT_RULE

    def validate_payload(self, team_room_id, payload) -> dict:
        payload = payload or {}
        rule_id = payload.get("rule_id")
        agree = payload.get("agree")
        if not isinstance(rule_id, int) or isinstance(rule_id, bool):
            raise ValidationError("rule_id is required", details={"rule_id": "integer required"})
        if not isinstance(agree, bool):
            raise ValidationError("agree must be true or false", details={"agree": "boolean required"})
        template = db.session.get(RuleTemplate, rule_id)
        if not template or not template.is_active:
            raise NotFoundError(resource="RuleTemplate", resource_id=rule_id)
        return {"rule_id": rule_id, "agree": agree}

    def is_completion_condition_met(self, team_room_id) -> bool:
        participation = vote_ledger.list_participation(self.subject, team_room_id)
        return participation["total"] > 0 and participation["voted_count"] == participation["total"]

    def derive_outcome(self, team_room_id, now) -> dict:
        voted = len(vote_ledger.rule_completer_ids(team_room_id))
        threshold = majority_threshold(voted)
        counts = vote_ledger.tally(self.subject, team_room_id)

        rules = []
        if voted:
            templates = {
                t.id: t for t in RuleTemplate.query.filter(RuleTemplate.id.in_(list(counts))).all()
            }
            for template_id in sorted(counts):
                agree = counts[template_id]["agree"]
                if agree >= threshold:
                    rules.append({
                        "rule_template_id": template_id,
                        "content": templates[template_id].content,
                        "agree_count": agree,
                    })

        logger.info(
            "Rule majority: %d voted, threshold %d, %d adopted", voted, threshold, len(rules),
            extra={"team_room_id": team_room_id, "subject": self.subject},
        )
        return {"voted_members": voted, "threshold": threshold, "rules": rules}

    def write_details(self, team_room_id, outcome, now) -> None:
        for r in outcome["rules"]:
            db.session.add(TeamRule(
                team_room_id=team_room_id,
                rule_template_id=r["rule_template_id"],
                content=r["content"],
                agree_count=r["agree_count"],
                created_at=now,
            ))

    def summarize(self, outcome) -> str:
        return f"{len(outcome['rules'])} rule(s) adopted."


def list_active_templates() -> list[RuleTemplate]:
    return RuleTemplate.query.filter_by(is_active=True).order_by(RuleTemplate.id).all()
