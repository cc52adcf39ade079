"""
Vote ledger tests.

Covers:
    - bulk submissions (tool, meeting): once per member, constraint wins races
    - per-item submissions (rule): upsert, completion = every active template
    - tally shapes per subject
    - participation partition
"""

import pytest

from collab.core.exceptions import DuplicateVoteError, ValidationError
from collab.models.vote import RuleVote, ToolVote, VoteBallot
from collab.services import vote_ledger

from factories import make_templates


def _tool(*selections):
    return {"selections": list(selections)}


def _meeting(block="BLOCK_20_24", **bitmaps):
    return {"bitmaps": bitmaps, "preferred_block": block}


# ═════════════════════════════════════════════════════════════════
# 1. Submission modes
# ═════════════════════════════════════════════════════════════════
class TestSubmissionMode:
    def test_modes(self):
        assert vote_ledger.submission_mode("tool") == "bulk"
        assert vote_ledger.submission_mode("meeting") == "bulk"
        assert vote_ledger.submission_mode("rule") == "per_item"

    def test_unknown_subject(self):
        with pytest.raises(ValidationError):
            vote_ledger.submission_mode("budget")


# ═════════════════════════════════════════════════════════════════
# 2. Bulk submissions
# ═════════════════════════════════════════════════════════════════
class TestBulkSubmission:
    def test_tool_ballot_with_detail_rows(self, team):
        m = team.member(1)
        ballot = vote_ledger.record_vote("tool", team.id, m.id, _tool((1, 101), (1, 102), (2, 201)))
        assert ballot.id is not None
        assert ToolVote.query.filter_by(ballot_id=ballot.id).count() == 3
        assert vote_ledger.has_voted("tool", team.id, m.id) is True

    def test_resubmission_rejected(self, team):
        m = team.member(1)
        vote_ledger.record_vote("tool", team.id, m.id, _tool((1, 101)))
        with pytest.raises(DuplicateVoteError):
            vote_ledger.record_vote("tool", team.id, m.id, _tool((1, 102)))
        assert ToolVote.query.filter_by(team_room_id=team.id).count() == 1

    def test_constraint_rejects_race_past_precheck(self, team, monkeypatch):
        """Two submissions that both pass the pre-check: only one ballot survives."""
        m = team.member(1)
        vote_ledger.record_vote("meeting", team.id, m.id, _meeting(mon=3))
        monkeypatch.setattr(vote_ledger, "has_voted", lambda *args: False)
        with pytest.raises(DuplicateVoteError):
            vote_ledger.record_vote("meeting", team.id, m.id, _meeting(tue=3))
        assert VoteBallot.query.filter_by(subject="meeting", team_room_id=team.id).count() == 1
        rows = vote_ledger.tally("meeting", team.id)
        assert rows[0]["bitmaps"]["mon"] == 3

    def test_subjects_are_independent(self, team):
        m = team.member(1)
        vote_ledger.record_vote("tool", team.id, m.id, _tool((1, 101)))
        assert vote_ledger.has_voted("meeting", team.id, m.id) is False


# ═════════════════════════════════════════════════════════════════
# 3. Per-item (rule) submissions
# ═════════════════════════════════════════════════════════════════
class TestRuleSubmission:
    def test_upsert_changes_vote(self, team, rule_templates):
        m = team.member(1)
        tid = rule_templates[0].id
        vote_ledger.record_vote("rule", team.id, m.id, {"rule_id": tid, "agree": True})
        vote_ledger.record_vote("rule", team.id, m.id, {"rule_id": tid, "agree": False})
        votes = RuleVote.query.filter_by(team_room_id=team.id, member_id=m.id).all()
        assert len(votes) == 1
        assert votes[0].is_agree is False

    def test_voted_only_after_every_template(self, team, rule_templates):
        m = team.member(1)
        for t in rule_templates[:-1]:
            vote_ledger.record_vote("rule", team.id, m.id, {"rule_id": t.id, "agree": True})
        assert vote_ledger.has_voted("rule", team.id, m.id) is False
        vote_ledger.record_vote("rule", team.id, m.id, {"rule_id": rule_templates[-1].id, "agree": True})
        assert vote_ledger.has_voted("rule", team.id, m.id) is True

    def test_no_active_templates_means_no_completers(self, team):
        assert vote_ledger.rule_completer_ids(team.id) == set()

    def test_inactive_template_not_required(self, team, rule_templates):
        from collab.models import db
        rule_templates[2].is_active = False
        db.session.commit()
        m = team.member(1)
        for t in rule_templates[:2]:
            vote_ledger.record_vote("rule", team.id, m.id, {"rule_id": t.id, "agree": True})
        assert vote_ledger.rule_completer_ids(team.id) == {m.id}


# ═════════════════════════════════════════════════════════════════
# 4. Tally
# ═════════════════════════════════════════════════════════════════
class TestTally:
    def test_tool_counts(self, team):
        vote_ledger.record_vote("tool", team.id, team.member(1).id, _tool((1, 101), (2, 201)))
        vote_ledger.record_vote("tool", team.id, team.member(2).id, _tool((1, 101), (1, 103)))
        assert vote_ledger.tally("tool", team.id) == {1: {101: 2, 103: 1}, 2: {201: 1}}

    def test_tool_tally_empty(self, team):
        assert vote_ledger.tally("tool", team.id) == {}

    def test_rule_counts_only_completers(self, team):
        a, b = make_templates("A", "B")
        m1, m2 = team.member(1), team.member(2)
        vote_ledger.record_vote("rule", team.id, m1.id, {"rule_id": a.id, "agree": True})
        vote_ledger.record_vote("rule", team.id, m1.id, {"rule_id": b.id, "agree": False})
        # m2 only voted on A: excluded
        vote_ledger.record_vote("rule", team.id, m2.id, {"rule_id": a.id, "agree": True})
        assert vote_ledger.tally("rule", team.id) == {
            a.id: {"agree": 1, "disagree": 0},
            b.id: {"agree": 0, "disagree": 1},
        }

    def test_meeting_rows(self, team):
        vote_ledger.record_vote("meeting", team.id, team.member(1).id,
                                _meeting("BLOCK_08_12", mon=0b11))
        rows = vote_ledger.tally("meeting", team.id)
        assert len(rows) == 1
        assert rows[0]["member_id"] == team.member(1).id
        assert rows[0]["preferred_block"] == "BLOCK_08_12"
        assert rows[0]["bitmaps"]["mon"] == 0b11
        assert rows[0]["bitmaps"]["sun"] == 0


# ═════════════════════════════════════════════════════════════════
# 5. Participation
# ═════════════════════════════════════════════════════════════════
class TestParticipation:
    def test_partition(self, team):
        vote_ledger.record_vote("tool", team.id, team.member(3).id, _tool((4, 401)))
        p = vote_ledger.list_participation("tool", team.id)
        assert p["total"] == 4
        assert p["voted_count"] == 1
        assert [m["user_id"] for m in p["voted_members"]] == [3]
        assert [m["user_id"] for m in p["not_voted_members"]] == [1, 2, 4]
