"""
HTTP API tests: setup, votes, outcomes, tool proposals, rules, notifications, admin, health.

Acting user is passed in the X-User-Id header.
"""

from collab.models import db
from collab.models.teamroom import TeamRoom

from factories import auth, availability, make_team, make_templates

ADMIN = auth(900)


def _tool_ballot(*tool_ids, category_id=1):
    return {"tool_votes": [{"category_id": category_id, "tool_ids": list(tool_ids)}]}


# ═════════════════════════════════════════════════════════════════
# 1. Setup
# ═════════════════════════════════════════════════════════════════
class TestSetupAPI:
    def test_start_and_read(self, client, team):
        r = client.post(f"/api/v1/teamrooms/{team.id}/setup", headers=auth(1))
        assert r.status_code == 201
        d = r.get_json()
        assert d["workflow"] == "SETUP"
        assert d["pending_subjects"] == ["tool", "rule", "meeting"]

        r = client.get(f"/api/v1/teamrooms/{team.id}/setup", headers=auth(1))
        assert r.status_code == 200
        assert r.get_json()["is_expired"] is False

    def test_start_twice_conflicts(self, client, team):
        client.post(f"/api/v1/teamrooms/{team.id}/setup", headers=auth(1))
        r = client.post(f"/api/v1/teamrooms/{team.id}/setup", headers=auth(1))
        assert r.status_code == 409

    def test_unknown_room(self, client):
        r = client.post("/api/v1/teamrooms/999/setup", headers=auth(1))
        assert r.status_code == 404
        assert r.get_json()["code"] == "ERR_NOT_FOUND"

    def test_read_requires_membership(self, client, team):
        client.post(f"/api/v1/teamrooms/{team.id}/setup", headers=auth(1))
        r = client.get(f"/api/v1/teamrooms/{team.id}/setup", headers=auth(77))
        assert r.status_code == 403
        assert r.get_json()["code"] == "ERR_NOT_TEAM_MEMBER"

    def test_read_without_header(self, client, team):
        r = client.get(f"/api/v1/teamrooms/{team.id}/setup")
        assert r.status_code == 403

    def test_bad_user_header(self, client, team):
        r = client.get(f"/api/v1/teamrooms/{team.id}/setup", headers={"X-User-Id": "abc"})
        assert r.status_code == 422

    def test_start_requires_identity(self, client, team):
        r = client.post(f"/api/v1/teamrooms/{team.id}/setup")
        assert r.status_code == 401
        assert db.session.get(TeamRoom, team.id).workflow == "PENDING"

    def test_start_requires_host_or_leader(self, client, team):
        r = client.post(f"/api/v1/teamrooms/{team.id}/setup", headers=auth(3))
        assert r.status_code == 403
        assert r.get_json()["code"] == "ERR_FORBIDDEN"
        r = client.post(f"/api/v1/teamrooms/{team.id}/setup", headers=auth(77))
        assert r.status_code == 403

    def test_leader_and_admin_can_start(self, client, team):
        assert client.post(f"/api/v1/teamrooms/{team.id}/setup", headers=auth(2)).status_code == 201
        other = make_team(user_ids=(5, 6))
        assert client.post(f"/api/v1/teamrooms/{other.id}/setup", headers=ADMIN).status_code == 201


# ═════════════════════════════════════════════════════════════════
# 2. Votes, participation, outcome
# ═════════════════════════════════════════════════════════════════
class TestVotesAPI:
    def test_submit_tool_vote(self, client, team):
        r = client.post(f"/api/v1/teamrooms/{team.id}/tool/votes",
                        json=_tool_ballot(101, 102), headers=auth(1))
        assert r.status_code == 201
        d = r.get_json()
        assert d["subject"] == "tool"
        assert d["early_completed"] is False

    def test_plural_subject_alias(self, client, team):
        r = client.post(f"/api/v1/teamrooms/{team.id}/tools/votes",
                        json=_tool_ballot(101), headers=auth(1))
        assert r.status_code == 201

    def test_duplicate_vote(self, client, team):
        url = f"/api/v1/teamrooms/{team.id}/tool/votes"
        client.post(url, json=_tool_ballot(101), headers=auth(1))
        r = client.post(url, json=_tool_ballot(102), headers=auth(1))
        assert r.status_code == 409
        assert r.get_json()["code"] == "ERR_ALREADY_VOTED"

    def test_invalid_payload(self, client, team):
        r = client.post(f"/api/v1/teamrooms/{team.id}/tool/votes",
                        json={"tool_votes": []}, headers=auth(1))
        assert r.status_code == 422
        assert r.get_json()["code"] == "ERR_VALIDATION_INVALID"

    def test_unknown_subject(self, client, team):
        r = client.post(f"/api/v1/teamrooms/{team.id}/budget/votes", json={}, headers=auth(1))
        assert r.status_code == 422

    def test_non_member(self, client, team):
        r = client.post(f"/api/v1/teamrooms/{team.id}/tool/votes",
                        json=_tool_ballot(101), headers=auth(55))
        assert r.status_code == 403

    def test_non_json_body_rejected(self, client, team):
        r = client.post(f"/api/v1/teamrooms/{team.id}/tool/votes",
                        data="tool=101", content_type="text/plain", headers=auth(1))
        assert r.status_code == 415

    def test_participation(self, client, team):
        client.post(f"/api/v1/teamrooms/{team.id}/meeting/votes",
                    json={"availability": availability(mon=[0, 1]), "preferred_block": "BLOCK_08_12"},
                    headers=auth(2))
        r = client.get(f"/api/v1/teamrooms/{team.id}/meeting/participation", headers=auth(1))
        assert r.status_code == 200
        d = r.get_json()
        assert d["voted_count"] == 1
        assert d["voted_members"][0]["user_id"] == 2
        assert len(d["not_voted_members"]) == 3

    def test_outcome_before_confirmation(self, client, team):
        r = client.get(f"/api/v1/teamrooms/{team.id}/rule/outcome", headers=auth(1))
        assert r.status_code == 409
        d = r.get_json()
        assert d["code"] == "ERR_NOT_CONFIRMED"
        assert d["details"]["confirmed"] is False

    def test_full_setup_via_api(self, client, team):
        """Every member votes on every subject: the room ends COMPLETED without a sweep."""
        tpl = make_templates("Be kind.")[0]
        client.post(f"/api/v1/teamrooms/{team.id}/setup", headers=auth(1))
        base = f"/api/v1/teamrooms/{team.id}"
        for uid in team.user_ids:
            client.post(f"{base}/tool/votes", json=_tool_ballot(101), headers=auth(uid))
            client.post(f"{base}/rule/votes", json={"rule_id": tpl.id, "agree": True}, headers=auth(uid))
            r = client.post(f"{base}/meeting/votes",
                            json={"availability": availability(fri=[12, 13]),
                                  "preferred_block": "BLOCK_12_16"},
                            headers=auth(uid))
        assert r.get_json()["early_completed"] is True

        r = client.get(f"{base}/setup", headers=auth(1))
        d = r.get_json()
        assert d["workflow"] == "COMPLETED"
        assert d["is_all_completed"] is True

        r = client.get(f"{base}/tool/outcome", headers=auth(3))
        assert r.get_json()["payload"]["tools"] == [{"category_id": 1, "tool_id": 101, "vote_count": 4}]
        r = client.get(f"{base}/meeting/outcome", headers=auth(3))
        assert r.get_json()["payload"]["start_time"] == "14:00"

        r = client.post(f"{base}/tool/votes", json=_tool_ballot(102), headers=auth(1))
        assert r.status_code == 409
        assert r.get_json()["code"] == "ERR_SUBJECT_CLOSED"
        assert db.session.get(TeamRoom, team.id).workflow == "COMPLETED"


# ═════════════════════════════════════════════════════════════════
# 3. Tool proposals & vote counts
# ═════════════════════════════════════════════════════════════════
class TestToolAPI:
    def test_vote_counts(self, client, team):
        client.post(f"/api/v1/teamrooms/{team.id}/tool/votes",
                    json=_tool_ballot(301, category_id=3), headers=auth(1))
        r = client.get(f"/api/v1/teamrooms/{team.id}/tools/categories/3/votes", headers=auth(2))
        assert r.status_code == 200
        tools = {t["tool_id"]: t["vote_count"] for t in r.get_json()["tools"]}
        assert tools == {301: 1, 302: 0, 303: 0}

    def test_unknown_category(self, client, team):
        r = client.get(f"/api/v1/teamrooms/{team.id}/tools/categories/9/votes", headers=auth(2))
        assert r.status_code == 404

    def test_proposal_flow(self, client, team):
        base = f"/api/v1/teamrooms/{team.id}/tools/proposals"
        r = client.post(base, json={"category_id": 4, "tool_id": 450}, headers=auth(3))
        assert r.status_code == 201
        pid = r.get_json()["id"]
        assert r.get_json()["decision"] == "PENDING"

        r = client.get(f"{base}?decision=PENDING", headers=auth(4))
        assert r.get_json()["total"] == 1

        r = client.get(f"{base}/{pid}", headers=auth(4))
        assert r.status_code == 403
        r = client.post(f"{base}/{pid}/decision", json={"approved": True}, headers=auth(4))
        assert r.status_code == 403

        r = client.post(f"{base}/{pid}/decision", json={"approved": True}, headers=auth(2))
        assert r.status_code == 200
        assert r.get_json()["decision"] == "APPROVED"

        r = client.post(f"{base}/{pid}/decision", json={"approved": False}, headers=auth(1))
        assert r.status_code == 409

        r = client.post(f"/api/v1/teamrooms/{team.id}/tool/votes",
                        json=_tool_ballot(450, category_id=4), headers=auth(3))
        assert r.status_code == 201

    def test_proposal_missing_fields(self, client, team):
        r = client.post(f"/api/v1/teamrooms/{team.id}/tools/proposals",
                        json={"category_id": 1}, headers=auth(3))
        assert r.status_code == 422

    def test_decision_must_be_boolean(self, client, team):
        base = f"/api/v1/teamrooms/{team.id}/tools/proposals"
        pid = client.post(base, json={"category_id": 1, "tool_id": 150}, headers=auth(3)).get_json()["id"]
        r = client.post(f"{base}/{pid}/decision", json={"approved": "yes"}, headers=auth(1))
        assert r.status_code == 422

    def test_invalid_decision_filter(self, client, team):
        r = client.get(f"/api/v1/teamrooms/{team.id}/tools/proposals?decision=MAYBE", headers=auth(1))
        assert r.status_code == 422


# ═════════════════════════════════════════════════════════════════
# 4. Rules, notifications
# ═════════════════════════════════════════════════════════════════
class TestRulesAndNotificationsAPI:
    def test_rule_templates(self, client, rule_templates):
        r = client.get("/api/v1/rules/templates")
        assert r.status_code == 200
        assert r.get_json()["total"] == 3

    def test_confirmation_notifications(self, client, team, clock):
        from collab.services.setup_sweeper import SetupSweeper

        client.post(f"/api/v1/teamrooms/{team.id}/setup", headers=auth(1))
        clock.advance(hours=7)
        SetupSweeper().run_tick()

        r = client.get(f"/api/v1/teamrooms/{team.id}/notifications", headers=auth(2))
        assert r.status_code == 200
        d = r.get_json()
        # tool, rule, meeting and setup completed
        assert d["total"] == 4
        assert {n["category"] for n in d["items"]} == {"tool", "rule", "meeting", "setup"}

        nid = d["items"][0]["id"]
        r = client.post(f"/api/v1/teamrooms/{team.id}/notifications/{nid}/read", headers=auth(2))
        assert r.get_json()["is_read"] is True
        r = client.get(f"/api/v1/teamrooms/{team.id}/notifications?unread_only=true", headers=auth(2))
        assert r.get_json()["total"] == 3

        r = client.post(f"/api/v1/teamrooms/{team.id}/notifications/read-all", headers=auth(2))
        assert r.get_json()["marked_read"] == 3

    def test_notifications_require_membership(self, client, team):
        r = client.get(f"/api/v1/teamrooms/{team.id}/notifications", headers=auth(88))
        assert r.status_code == 403


# ═════════════════════════════════════════════════════════════════
# 5. Admin & health
# ═════════════════════════════════════════════════════════════════
class TestAdminAPI:
    def test_list_jobs(self, client):
        r = client.get("/api/v1/admin/jobs", headers=ADMIN)
        assert r.status_code == 200
        d = r.get_json()
        assert [j["job_name"] for j in d["jobs"]] == ["setup_confirmation_sweep"]
        assert d["running"] is False

    def test_run_sweep_job(self, client, team, clock):
        client.post(f"/api/v1/teamrooms/{team.id}/setup", headers=auth(1))
        clock.advance(hours=7)
        r = client.post("/api/v1/admin/jobs/setup_confirmation_sweep/run", headers=ADMIN)
        assert r.status_code == 200
        assert r.get_json()["status"] == "success"
        assert db.session.get(TeamRoom, team.id).workflow == "COMPLETED"

    def test_run_unknown_job(self, client):
        r = client.post("/api/v1/admin/jobs/nope/run", headers=ADMIN)
        assert r.status_code == 404

    def test_toggle(self, client):
        url = "/api/v1/admin/jobs/setup_confirmation_sweep/toggle"
        r = client.patch(url, json={"enabled": False}, headers=ADMIN)
        assert r.status_code == 200
        assert r.get_json()["is_enabled"] is False
        r = client.patch(url, json={}, headers=ADMIN)
        assert r.status_code == 422

    def test_requires_identity(self, client):
        r = client.patch("/api/v1/admin/jobs/setup_confirmation_sweep/toggle", json={"enabled": False})
        assert r.status_code == 401
        assert r.get_json()["code"] == "ERR_UNAUTHORIZED"
        r = client.post("/api/v1/admin/jobs/setup_confirmation_sweep/run")
        assert r.status_code == 401

    def test_non_admin_forbidden(self, client, team):
        r = client.patch("/api/v1/admin/jobs/setup_confirmation_sweep/toggle",
                         json={"enabled": False}, headers=auth(1))
        assert r.status_code == 403
        assert r.get_json()["code"] == "ERR_FORBIDDEN"
        r = client.get("/api/v1/admin/jobs", headers=auth(1))
        assert r.status_code == 403

        r = client.get("/api/v1/admin/jobs", headers=ADMIN)
        job = r.get_json()["jobs"][0]["db_record"]
        assert job["is_enabled"] is True


class TestHealthAPI:
    def test_ready(self, client):
        r = client.get("/api/v1/health")
        assert r.status_code == 200
        assert r.get_json()["status"] == "ok"

    def test_live(self, client):
        r = client.get("/api/v1/health/live")
        assert r.status_code == 200
        assert r.get_json()["checks"]["database"]["status"] == "ok"

    def test_unknown_route(self, client):
        r = client.get("/api/v1/nowhere")
        assert r.status_code == 404
