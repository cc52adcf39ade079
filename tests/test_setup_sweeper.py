"""
Confirmation sweeper tests.

Covers:
    - only setups past their deadline with a pending subject are swept
    - per-track isolation: one failing confirm never blocks its siblings
    - the workflow gate runs in its own fault boundary
    - eventual convergence over repeated ticks
    - idempotent confirm racing between early completion and the sweeper
"""

from datetime import timedelta

import pytest

from collab.models import db
from collab.models.outcome import ConfirmedOutcome
from collab.models.teamroom import WORKFLOW_COMPLETED, WORKFLOW_SETUP, TeamRoom
from collab.services import setup_service, workflow_gate
from collab.services.setup_sweeper import SetupSweeper
from collab.services.tracks import get_track
from collab.services.tracks.meeting_track import MeetingTrack
from collab.services.tracks.rule_track import RuleTrack
from collab.services.tracks.tool_track import ToolTrack

from factories import T0, availability, make_team, make_templates


def _workflow(team_room_id):
    return db.session.get(TeamRoom, team_room_id).workflow


def _fail_for(track_cls, monkeypatch, times=1, team_room_id=None):
    """Make ``track_cls.derive_outcome`` raise ``times`` times (optionally for one room only)."""
    original = track_cls.derive_outcome
    state = {"left": times}

    def flaky(self, room_id, now):
        if state["left"] > 0 and (team_room_id is None or room_id == team_room_id):
            state["left"] -= 1
            raise RuntimeError("collaborator unavailable")
        return original(self, room_id, now)

    monkeypatch.setattr(track_cls, "derive_outcome", flaky)


@pytest.fixture()
def started(team, clock):
    setup_service.start_setup(team.id)
    return team


# ═════════════════════════════════════════════════════════════════
# 1. Selection
# ═════════════════════════════════════════════════════════════════
class TestSweepSelection:
    def test_nothing_before_deadline(self, started, clock):
        clock.advance(hours=5)
        report = SetupSweeper().run_tick()
        assert report.setups == []
        assert setup_service.get_setup(started.id).pending_subjects() == ["tool", "rule", "meeting"]

    def test_expired_setup_confirms_everything(self, started, clock):
        clock.advance(hours=6, minutes=1)
        report = SetupSweeper().run_tick()

        assert len(report.setups) == 1
        sweep = report.setups[0]
        assert [t.subject for t in sweep.tracks] == ["tool", "rule", "meeting"]
        assert all(t.ok and t.flag_set for t in sweep.tracks)
        assert sweep.workflow_completed is True
        assert _workflow(started.id) == WORKFLOW_COMPLETED

    def test_completed_subjects_are_skipped(self, started, clock):
        get_track("tool").submit(started.id, 1, {"tool_votes": [{"category_id": 1, "tool_ids": [101]}]})
        get_track("tool").confirm(started.id)
        setup_service.mark_subject_completed(started.id, "tool")
        clock.advance(hours=7)

        sweep = SetupSweeper().run_tick().setups[0]
        assert [t.subject for t in sweep.tracks] == ["rule", "meeting"]

    def test_second_tick_finds_nothing(self, started, clock):
        clock.advance(hours=7)
        SetupSweeper().run_tick()
        assert SetupSweeper().run_tick().setups == []

    def test_report_dict(self, started, clock):
        clock.advance(hours=7)
        d = SetupSweeper().run_tick().to_dict()
        assert d["setups_scanned"] == 1
        assert d["tracks_confirmed"] == 3
        assert d["tracks_failed"] == 0
        assert d["workflows_completed"] == 1


# ═════════════════════════════════════════════════════════════════
# 2. Isolation
# ═════════════════════════════════════════════════════════════════
class TestIsolation:
    def test_failing_tool_does_not_block_rule_and_meeting(self, started, clock, monkeypatch):
        _fail_for(ToolTrack, monkeypatch)
        clock.advance(hours=7)

        sweep = SetupSweeper().run_tick().setups[0]
        results = {t.subject: t for t in sweep.tracks}
        assert results["tool"].ok is False
        assert "collaborator unavailable" in results["tool"].error
        assert results["rule"].ok and results["meeting"].ok

        setup = setup_service.get_setup(started.id)
        assert setup.tool_completed is False
        assert setup.rule_completed is True
        assert setup.meeting_completed is True
        assert get_track("tool").find_outcome(started.id) is None
        assert _workflow(started.id) == WORKFLOW_SETUP

    def test_unexpected_error_outside_confirm_is_isolated(self, started, clock, monkeypatch):
        def broken(self, team_room_id, now=None):
            raise RuntimeError("connection reset")

        monkeypatch.setattr(RuleTrack, "confirm", broken)
        clock.advance(hours=7)

        sweep = SetupSweeper().run_tick().setups[0]
        results = {t.subject: t for t in sweep.tracks}
        assert results["rule"].ok is False
        assert results["rule"].error == "connection reset"
        assert results["tool"].ok and results["meeting"].ok

    def test_gate_failure_keeps_flags(self, started, clock, monkeypatch):
        def boom(team_room_id):
            raise RuntimeError("gate down")

        monkeypatch.setattr(workflow_gate, "complete_if_ready", boom)
        clock.advance(hours=7)

        sweep = SetupSweeper().run_tick().setups[0]
        assert sweep.gate_error == "gate down"
        assert sweep.workflow_completed is False
        assert setup_service.get_setup(started.id).is_all_completed() is True
        assert _workflow(started.id) == WORKFLOW_SETUP

        # Next tick retries only the gate
        monkeypatch.undo()
        retry = SetupSweeper().run_tick().setups[0]
        assert retry.tracks == []
        assert retry.workflow_completed is True
        assert _workflow(started.id) == WORKFLOW_COMPLETED

    def test_one_room_failing_does_not_affect_another(self, clock, monkeypatch):
        a = make_team(user_ids=(1, 2))
        b = make_team(user_ids=(3, 4))
        setup_service.start_setup(a.id)
        setup_service.start_setup(b.id)
        _fail_for(MeetingTrack, monkeypatch, times=5, team_room_id=a.id)
        clock.advance(hours=7)

        report = SetupSweeper().run_tick()
        by_room = {s.team_room_id: s for s in report.setups}
        assert by_room[a.id].all_completed is False
        assert by_room[b.id].workflow_completed is True
        assert report.failures == 1


# ═════════════════════════════════════════════════════════════════
# 3. Convergence
# ═════════════════════════════════════════════════════════════════
class TestConvergence:
    def test_example_setup_timeline(self, clock, monkeypatch):
        """Two subjects finish early, the third fails once at the deadline then succeeds."""
        t = make_team(user_ids=(1, 2))
        templates = make_templates("Be on time.", "Write it down.")
        setup = setup_service.start_setup(t.id)
        assert setup.deadline.replace(tzinfo=None) == (T0 + timedelta(hours=6)).replace(tzinfo=None)

        clock.advance(hours=1)
        for uid in t.user_ids:
            get_track("tool").submit(t.id, uid, {"tool_votes": [{"category_id": 2, "tool_ids": [201]}]})
        clock.advance(hours=1)
        for uid in t.user_ids:
            for tpl in templates:
                get_track("rule").submit(t.id, uid, {"rule_id": tpl.id, "agree": True})

        status = setup_service.setup_status(t.id)
        assert status["pending_subjects"] == ["meeting"]

        # Deadline passes with one meeting ballot missing; the collaborator fails once
        get_track("meeting").submit(t.id, 1, {"availability": availability(thu=[20, 21]),
                                              "preferred_block": "BLOCK_16_20"})
        _fail_for(MeetingTrack, monkeypatch)
        clock.set(T0 + timedelta(hours=6, minutes=1))
        first = SetupSweeper().run_tick()
        assert [(r.subject, r.ok) for r in first.setups[0].tracks] == [("meeting", False)]
        assert setup_service.get_setup(t.id).meeting_completed is False
        assert _workflow(t.id) == WORKFLOW_SETUP

        clock.set(T0 + timedelta(hours=7))
        second = SetupSweeper().run_tick()
        assert second.setups[0].workflow_completed is True
        assert setup_service.get_setup(t.id).is_all_completed() is True
        assert _workflow(t.id) == WORKFLOW_COMPLETED

        outcome = get_track("meeting").get_outcome(t.id)["payload"]
        assert outcome["day_of_week"] == "thu"
        assert outcome["start_time"] == "18:00"

    def test_early_flag_failure_does_not_fail_the_vote(self, clock, monkeypatch):
        """The last ballot confirms tools; a flag write error is logged, not raised."""
        t = make_team(user_ids=(1, 2))
        setup_service.start_setup(t.id)

        def db_down(team_room_id, subject):
            raise RuntimeError("database unavailable")

        monkeypatch.setattr(setup_service, "mark_subject_completed", db_down)
        tools = get_track("tool")
        tools.submit(t.id, 1, {"tool_votes": [{"category_id": 1, "tool_ids": [101]}]})
        result = tools.submit(t.id, 2, {"tool_votes": [{"category_id": 1, "tool_ids": [101]}]})
        assert result["early_completed"] is True
        assert tools.find_outcome(t.id) is not None
        assert setup_service.get_setup(t.id).tool_completed is False

        monkeypatch.undo()
        clock.advance(hours=7)
        SetupSweeper().run_tick()
        assert setup_service.get_setup(t.id).tool_completed is True
        assert _workflow(t.id) == WORKFLOW_COMPLETED

    def test_early_gate_failure_is_retried_by_sweep(self, clock, monkeypatch):
        t = make_team(user_ids=(1, 2))
        setup_service.start_setup(t.id)
        for subject in ("tool", "rule"):
            setup_service.mark_subject_completed(t.id, subject)
            get_track(subject).confirm(t.id)

        def gate_down(team_room_id):
            raise RuntimeError("gate down")

        monkeypatch.setattr(workflow_gate, "complete_if_ready", gate_down)
        meeting = {"availability": availability(mon=[24, 25]), "preferred_block": "BLOCK_20_24"}
        get_track("meeting").submit(t.id, 1, meeting)
        result = get_track("meeting").submit(t.id, 2, meeting)
        assert result["early_completed"] is True
        assert setup_service.get_setup(t.id).is_all_completed() is True
        assert _workflow(t.id) == WORKFLOW_SETUP

        monkeypatch.undo()
        clock.advance(hours=7)
        sweep = SetupSweeper().run_tick().setups[0]
        assert sweep.tracks == []
        assert sweep.workflow_completed is True
        assert _workflow(t.id) == WORKFLOW_COMPLETED

    def test_confirmed_but_unflagged_subject_converges(self, started, clock):
        """Outcome persisted, flag never written (crash in between): the sweep only sets the flag."""
        row = get_track("rule").confirm(started.id)
        clock.advance(hours=7)

        sweep = SetupSweeper().run_tick().setups[0]
        assert {t.subject for t in sweep.tracks if t.ok} == {"tool", "rule", "meeting"}
        assert ConfirmedOutcome.query.filter_by(subject="rule", team_room_id=started.id).one().id == row.id


# ═════════════════════════════════════════════════════════════════
# 4. Concurrent confirm
# ═════════════════════════════════════════════════════════════════
class TestConcurrentConfirm:
    def test_loser_returns_winner_outcome(self, started, monkeypatch):
        """A confirm that misses the existing outcome hits the unique constraint and yields the winner."""
        track = get_track("tool")
        winner = track.confirm(started.id)

        original = ToolTrack.find_outcome
        calls = {"n": 0}

        def stale_first(self, team_room_id):
            calls["n"] += 1
            if calls["n"] == 1:
                return None
            return original(self, team_room_id)

        monkeypatch.setattr(ToolTrack, "find_outcome", stale_first)
        result = track.confirm(started.id)
        assert result.id == winner.id
        assert ConfirmedOutcome.query.filter_by(subject="tool", team_room_id=started.id).count() == 1
