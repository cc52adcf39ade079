"""
Rule track tests.

Covers:
    - payload validation
    - strict-majority adoption over members who voted on every template
    - early completion, deadline confirmation with partial participation
    - empty template catalogue
"""

import pytest

from collab.core.exceptions import NotFoundError, SubjectClosedError, ValidationError
from collab.models import db
from collab.models.rule import TeamRule
from collab.services.tracks.rule_track import RuleTrack, list_active_templates, majority_threshold

track = RuleTrack()


def _vote_all(team_id, user_id, templates, agrees):
    result = None
    for template, agree in zip(templates, agrees):
        result = track.submit(team_id, user_id, {"rule_id": template.id, "agree": agree})
    return result


# ═════════════════════════════════════════════════════════════════
# 1. Majority threshold
# ═════════════════════════════════════════════════════════════════
class TestMajorityThreshold:
    @pytest.mark.parametrize("voted, expected", [(1, 1), (2, 2), (3, 2), (4, 3), (5, 3), (0, 1)])
    def test_strict_majority(self, voted, expected):
        assert majority_threshold(voted) == expected


# ═════════════════════════════════════════════════════════════════
# 2. Validation
# ═════════════════════════════════════════════════════════════════
class TestValidation:
    def test_agree_must_be_boolean(self, team, rule_templates):
        with pytest.raises(ValidationError):
            track.validate_payload(team.id, {"rule_id": rule_templates[0].id, "agree": "yes"})

    def test_rule_id_required(self, team, rule_templates):
        with pytest.raises(ValidationError):
            track.validate_payload(team.id, {"agree": True})

    def test_unknown_template(self, team, rule_templates):
        with pytest.raises(NotFoundError):
            track.validate_payload(team.id, {"rule_id": 999, "agree": True})

    def test_inactive_template(self, team, rule_templates):
        rule_templates[0].is_active = False
        db.session.commit()
        with pytest.raises(NotFoundError):
            track.validate_payload(team.id, {"rule_id": rule_templates[0].id, "agree": True})
        assert [t.id for t in list_active_templates()] == [t.id for t in rule_templates[1:]]


# ═════════════════════════════════════════════════════════════════
# 3. Submission & early completion
# ═════════════════════════════════════════════════════════════════
class TestSubmit:
    def test_vote_can_change_before_confirmation(self, team, rule_templates):
        t = rule_templates[0]
        track.submit(team.id, 1, {"rule_id": t.id, "agree": True})
        track.submit(team.id, 1, {"rule_id": t.id, "agree": False})
        assert track.tally(team.id)[t.id] == {"agree": 0, "disagree": 0}  # not a completer yet

    def test_all_members_complete_confirms(self, team, rule_templates):
        _vote_all(team.id, 1, rule_templates, (True, True, False))
        _vote_all(team.id, 2, rule_templates, (True, False, False))
        _vote_all(team.id, 3, rule_templates, (True, True, False))
        result = _vote_all(team.id, 4, rule_templates, (False, True, True))
        assert result["early_completed"] is True

        payload = track.get_outcome(team.id)["payload"]
        assert payload["voted_members"] == 4
        assert payload["threshold"] == 3
        # 4 voters: template 0 has 3 agrees, template 1 has 3, template 2 has 1
        assert [r["rule_template_id"] for r in payload["rules"]] == [
            rule_templates[0].id, rule_templates[1].id,
        ]
        assert TeamRule.query.filter_by(team_room_id=team.id).count() == 2

    def test_partial_completion_does_not_confirm(self, team, rule_templates):
        for uid in team.user_ids[:-1]:
            _vote_all(team.id, uid, rule_templates, (True, True, True))
        # last member votes on two of three templates
        result = _vote_all(team.id, 4, rule_templates[:2], (True, True))
        assert result["early_completed"] is False
        assert track.find_outcome(team.id) is None

    def test_closed_after_confirmation(self, team, rule_templates):
        track.confirm(team.id)
        with pytest.raises(SubjectClosedError):
            track.submit(team.id, 1, {"rule_id": rule_templates[0].id, "agree": True})


# ═════════════════════════════════════════════════════════════════
# 4. Deadline confirmation
# ═════════════════════════════════════════════════════════════════
class TestConfirm:
    def test_only_completers_counted(self, team, rule_templates):
        _vote_all(team.id, 1, rule_templates, (True, False, True))
        _vote_all(team.id, 2, rule_templates, (True, False, False))
        # member 3 is incomplete; their agrees are ignored
        _vote_all(team.id, 3, rule_templates[:2], (False, True))

        payload = track.confirm(team.id).payload
        assert payload["voted_members"] == 2
        assert payload["threshold"] == 2
        assert [r["rule_template_id"] for r in payload["rules"]] == [rule_templates[0].id]
        assert payload["rules"][0]["agree_count"] == 2
        assert payload["rules"][0]["content"] == rule_templates[0].content

    def test_nobody_voted_adopts_nothing(self, team, rule_templates):
        payload = track.confirm(team.id).payload
        assert payload == {"voted_members": 0, "threshold": 1, "rules": []}

    def test_no_active_templates(self, team):
        payload = track.confirm(team.id).payload
        assert payload["rules"] == []
