"""
Tool track — collaboration tool voting and member proposals.

Ballot (bulk, once per member):
    {"tool_votes": [{"category_id": 1, "tool_ids": [101, 103]}, ...]}

Confirm keeps, per category, every tool whose vote count is among the top
``TOOL_TOP_RANKS`` distinct counts (ties share a rank), plus every approved
proposal. Confirmation waits while any proposal is still undecided.
"""

from __future__ import annotations

import logging
from datetime import datetime

from flask import current_app, has_app_context

from collab.core.clock import get_clock
from collab.core.exceptions import ConfirmationError, ConflictError, NotFoundError, ValidationError
from collab.models import db
from collab.models.collabtool import (
    PROPOSAL_APPROVED,
    PROPOSAL_PENDING,
    PROPOSAL_REJECTED,
    TOOL_CATALOG,
    TOOL_CATEGORIES,
    TeamTool,
    ToolProposal,
)
from collab.models.teamroom import SUBJECT_TOOL
from collab.services import vote_ledger
from collab.services.tracks.base import SubjectTrack
from collab.services.team_room_service import (
    get_team_room,
    member_count,
    require_manager,
    require_member,
)

logger = logging.getLogger(__name__)

DEFAULT_TOP_RANKS = 3


def select_top_ranked(counts: dict[int, int], ranks: int) -> list[tuple[int, int]]:
    """Tools whose count is among the ``ranks`` highest distinct counts.

    Returns ``(tool_id, count)`` pairs ordered by count desc, then tool id.
    """
    if not counts or ranks <= 0:
        return []
    top_counts = set(sorted(set(counts.values()), reverse=True)[:ranks])
    picked = [(tool_id, c) for tool_id, c in counts.items() if c in top_counts]
    return sorted(picked, key=lambda item: (-item[1], item[0]))


class ToolTrack(SubjectTrack):
    subject = SUBJECT_TOOL

    # ── Eligibility ──────────────────────────────────────────────────────

    def eligible_tools(self, team_room_id: int, category_id: int) -> set[int]:
        approved = (
            db.session.query(ToolProposal.tool_id)
            .filter_by(team_room_id=team_room_id, category_id=category_id,
                       decision=PROPOSAL_APPROVED)
            .all()
        )
        return set(TOOL_CATALOG.get(category_id, ())) | {r[0] for r in approved}

    def validate_payload(self, team_room_id, payload) -> dict:
        entries = (payload or {}).get("tool_votes")
        if not isinstance(entries, list) or not entries:
            raise ValidationError("tool_votes is required",
                                  details={"tool_votes": "non-empty list required"})

        selections = []
        seen_categories = set()
        for entry in entries:
            if not isinstance(entry, dict):
                raise ValidationError("Each tool_votes entry must be an object")
            category_id = entry.get("category_id")
            tool_ids = entry.get("tool_ids")
            if category_id not in TOOL_CATEGORIES:
                raise ValidationError(f"Unknown tool category {category_id!r}",
                                      details={"category_id": category_id})
            if category_id in seen_categories:
                raise ValidationError(f"Category {category_id} appears more than once")
            seen_categories.add(category_id)
            if not isinstance(tool_ids, list) or not tool_ids:
                raise ValidationError(f"tool_ids is required for category {category_id}")
            if not all(isinstance(t, int) and not isinstance(t, bool) for t in tool_ids):
                raise ValidationError(f"tool_ids must be integers in category {category_id}")
            if len(set(tool_ids)) != len(tool_ids):
                raise ValidationError(f"Duplicate tool_ids in category {category_id}")

            eligible = self.eligible_tools(team_room_id, category_id)
            unknown = [t for t in tool_ids if t not in eligible]
            if unknown:
                raise ValidationError(
                    f"Tools {unknown} are not available in category {category_id}",
                    details={"category_id": category_id, "tool_ids": unknown},
                )
            selections.extend((category_id, tool_id) for tool_id in tool_ids)
        return {"selections": selections}

    # ── Completion / confirmation ────────────────────────────────────────

    def is_completion_condition_met(self, team_room_id) -> bool:
        participation = vote_ledger.list_participation(self.subject, team_room_id)
        return participation["total"] > 0 and participation["voted_count"] == participation["total"]

    def derive_outcome(self, team_room_id, now: datetime) -> dict:
        pending = ToolProposal.query.filter_by(
            team_room_id=team_room_id, decision=PROPOSAL_PENDING,
        ).count()
        if pending:
            raise ConfirmationError(self.subject, team_room_id,
                                    f"{pending} tool proposal(s) still pending")

        ranks = DEFAULT_TOP_RANKS
        if has_app_context():
            ranks = current_app.config.get("TOOL_TOP_RANKS", DEFAULT_TOP_RANKS)

        counts = vote_ledger.tally(self.subject, team_room_id)
        chosen: dict[tuple[int, int], int] = {}
        for category_id in sorted(counts):
            for tool_id, count in select_top_ranked(counts[category_id], ranks):
                chosen[(category_id, tool_id)] = count

        approved = ToolProposal.query.filter_by(
            team_room_id=team_room_id, decision=PROPOSAL_APPROVED,
        ).all()
        for p in approved:
            key = (p.category_id, p.tool_id)
            chosen.setdefault(key, counts.get(p.category_id, {}).get(p.tool_id, 0))

        tools = [
            {"category_id": category_id, "tool_id": tool_id, "vote_count": count}
            for (category_id, tool_id), count in chosen.items()
        ]
        tools.sort(key=lambda t: (t["category_id"], -t["vote_count"], t["tool_id"]))
        return {"tools": tools}

    def write_details(self, team_room_id, outcome, now) -> None:
        for t in outcome["tools"]:
            db.session.add(TeamTool(
                team_room_id=team_room_id,
                category_id=t["category_id"],
                tool_id=t["tool_id"],
                vote_count=t["vote_count"],
                created_at=now,
            ))

    def summarize(self, outcome) -> str:
        return f"{len(outcome['tools'])} tool(s) confirmed."

    # ── Reads ────────────────────────────────────────────────────────────

    def vote_counts(self, team_room_id: int, category_id: int) -> dict:
        """Per-tool vote counts of one category (eligible tools with zero included)."""
        get_team_room(team_room_id)
        if category_id not in TOOL_CATEGORIES:
            raise NotFoundError(resource="ToolCategory", resource_id=category_id)
        counts = vote_ledger.tally(self.subject, team_room_id).get(category_id, {})
        tool_ids = sorted(self.eligible_tools(team_room_id, category_id) | set(counts))
        return {
            "category_id": category_id,
            "voted_count": vote_ledger.list_participation(self.subject, team_room_id)["voted_count"],
            "total_members": member_count(team_room_id),
            "tools": [{"tool_id": tid, "vote_count": counts.get(tid, 0)} for tid in tool_ids],
        }

    # ── Proposals ────────────────────────────────────────────────────────

    def propose(self, team_room_id: int, user_id, category_id, tool_id) -> ToolProposal:
        member = require_member(team_room_id, user_id)
        if self.find_outcome(team_room_id) is not None:
            raise ConflictError("Tools are already confirmed for this team room")
        if category_id not in TOOL_CATEGORIES:
            raise ValidationError(f"Unknown tool category {category_id!r}",
                                  details={"category_id": category_id})
        if not isinstance(tool_id, int) or isinstance(tool_id, bool):
            raise ValidationError("tool_id must be an integer", details={"tool_id": tool_id})
        if tool_id in TOOL_CATALOG.get(category_id, ()):
            raise ConflictError(f"Tool {tool_id} is already offered in category {category_id}")
        duplicate = ToolProposal.query.filter(
            ToolProposal.team_room_id == team_room_id,
            ToolProposal.category_id == category_id,
            ToolProposal.tool_id == tool_id,
            ToolProposal.decision != PROPOSAL_REJECTED,
        ).first()
        if duplicate:
            raise ConflictError(f"Tool {tool_id} has already been proposed")

        proposal = ToolProposal(
            team_room_id=team_room_id,
            category_id=category_id,
            tool_id=tool_id,
            proposer_member_id=member.id,
            decision=PROPOSAL_PENDING,
        )
        db.session.add(proposal)
        db.session.commit()
        logger.info(
            "Tool proposal created", extra={"team_room_id": team_room_id, "member_id": member.id},
        )
        return proposal

    def _proposal_in_room(self, team_room_id, proposal_id) -> ToolProposal:
        proposal = db.session.get(ToolProposal, proposal_id)
        if not proposal or proposal.team_room_id != team_room_id:
            raise NotFoundError(resource="ToolProposal", resource_id=proposal_id)
        return proposal

    def decide_proposal(self, team_room_id: int, proposal_id: int, user_id, approved: bool) -> ToolProposal:
        """Approve or reject a pending proposal (host / leader only, once)."""
        require_manager(team_room_id, user_id)
        proposal = self._proposal_in_room(team_room_id, proposal_id)
        if not proposal.is_pending():
            raise ConflictError(f"Proposal {proposal_id} was already {proposal.decision.lower()}")

        proposal.decision = PROPOSAL_APPROVED if approved else PROPOSAL_REJECTED
        proposal.decided_at = get_clock().now()
        db.session.commit()
        logger.info(
            "Tool proposal %s %s", proposal_id, proposal.decision,
            extra={"team_room_id": team_room_id},
        )
        # Every member may have voted while this proposal was pending
        self._try_early_completion(team_room_id)
        return proposal

    def get_proposal(self, team_room_id: int, proposal_id: int, user_id) -> ToolProposal:
        require_manager(team_room_id, user_id)
        return self._proposal_in_room(team_room_id, proposal_id)

    def list_proposals(self, team_room_id: int, user_id, decision: str | None = None) -> list[ToolProposal]:
        require_member(team_room_id, user_id)
        q = ToolProposal.query.filter_by(team_room_id=team_room_id)
        if decision:
            q = q.filter_by(decision=decision)
        return q.order_by(ToolProposal.id).all()
