"""
Team Collaboration Setup Engine
Vote Ledger — per-member vote storage shared by the three subject tracks.

Submission modes (``SUBMISSION_MODES``):
    bulk      tool, meeting  one ballot per member, rejected on re-submission
    per_item  rule           upsert keyed by (member, rule template)

The ``has_voted`` pre-check gives a friendly error for the common case; the
unique constraint on ``vote_ballots`` is what actually decides a race between
two concurrent submissions of the same member.

Payloads passed here are already validated and normalised by the track:
    tool     {"selections": [(category_id, tool_id), ...]}
    meeting  {"bitmaps": {"mon": int, ... "sun": int}, "preferred_block": str}
    rule     {"rule_id": int, "agree": bool}
"""

from __future__ import annotations

import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from collab.core.exceptions import DuplicateVoteError, ValidationError
from collab.models import db
from collab.models.meeting import DAYS
from collab.models.rule import RuleTemplate
from collab.models.teamroom import TeamMember
from collab.models.vote import (
    SUBMISSION_BULK,
    SUBMISSION_MODES,
    MeetingAvailability,
    RuleVote,
    ToolVote,
    VoteBallot,
)

logger = logging.getLogger(__name__)


def submission_mode(subject: str) -> str:
    try:
        return SUBMISSION_MODES[subject]
    except KeyError:
        raise ValidationError(f"Unknown subject '{subject}'") from None


# ═══════════════════════════════════════════════════════════════════════════
#  Writes
# ═══════════════════════════════════════════════════════════════════════════


def record_vote(subject: str, team_room_id: int, member_id: int, payload: dict):
    """Persist one member's vote and commit.

    Returns the VoteBallot (bulk) or RuleVote (per-item) row.

    Raises:
        DuplicateVoteError: bulk subject already submitted by this member.
    """
    if submission_mode(subject) == SUBMISSION_BULK:
        return _record_bulk(subject, team_room_id, member_id, payload)
    return _upsert_rule_vote(team_room_id, member_id, payload)


def _record_bulk(subject, team_room_id, member_id, payload):
    if has_voted(subject, team_room_id, member_id):
        raise DuplicateVoteError(subject, member_id)

    ballot = VoteBallot(subject=subject, team_room_id=team_room_id, member_id=member_id)
    db.session.add(ballot)
    try:
        db.session.flush()
        db.session.add_all(_detail_rows(subject, ballot, payload))
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        logger.info(
            "Duplicate %s ballot rejected by constraint", subject,
            extra={"team_room_id": team_room_id, "subject": subject, "member_id": member_id},
        )
        raise DuplicateVoteError(subject, member_id) from None

    logger.info(
        "Recorded %s ballot", subject,
        extra={"team_room_id": team_room_id, "subject": subject, "member_id": member_id},
    )
    return ballot


def _detail_rows(subject, ballot, payload):
    if subject == "tool":
        return [
            ToolVote(
                ballot_id=ballot.id,
                team_room_id=ballot.team_room_id,
                member_id=ballot.member_id,
                category_id=category_id,
                tool_id=tool_id,
            )
            for category_id, tool_id in payload["selections"]
        ]
    bitmaps = payload["bitmaps"]
    return [
        MeetingAvailability(
            ballot_id=ballot.id,
            team_room_id=ballot.team_room_id,
            member_id=ballot.member_id,
            preferred_block=payload["preferred_block"],
            **{f"availability_{day}": bitmaps.get(day, 0) for day in DAYS},
        )
    ]


def _upsert_rule_vote(team_room_id, member_id, payload):
    rule_id = payload["rule_id"]
    agree = bool(payload["agree"])

    vote = RuleVote.query.filter_by(
        team_room_id=team_room_id, member_id=member_id, rule_template_id=rule_id,
    ).first()
    if vote:
        vote.is_agree = agree
    else:
        vote = RuleVote(team_room_id=team_room_id, member_id=member_id,
                        rule_template_id=rule_id, is_agree=agree)
        db.session.add(vote)
    try:
        db.session.commit()
    except IntegrityError:
        # Concurrent first vote on the same item: apply ours on top of the winner
        db.session.rollback()
        vote = RuleVote.query.filter_by(
            team_room_id=team_room_id, member_id=member_id, rule_template_id=rule_id,
        ).one()
        vote.is_agree = agree
        db.session.commit()
    return vote


# ═══════════════════════════════════════════════════════════════════════════
#  Reads
# ═══════════════════════════════════════════════════════════════════════════


def active_rule_template_ids() -> list[int]:
    rows = (db.session.query(RuleTemplate.id)
            .filter(RuleTemplate.is_active.is_(True))
            .order_by(RuleTemplate.id).all())
    return [r[0] for r in rows]


def rule_completer_ids(team_room_id: int) -> set[int]:
    """Members who have voted on every active rule template."""
    template_ids = active_rule_template_ids()
    if not template_ids:
        return set()
    rows = (
        db.session.query(RuleVote.member_id)
        .filter(RuleVote.team_room_id == team_room_id,
                RuleVote.rule_template_id.in_(template_ids))
        .group_by(RuleVote.member_id)
        .having(func.count(func.distinct(RuleVote.rule_template_id)) == len(template_ids))
        .all()
    )
    return {r[0] for r in rows}


def _voted_member_ids(subject: str, team_room_id: int) -> set[int]:
    if submission_mode(subject) == SUBMISSION_BULK:
        rows = (db.session.query(VoteBallot.member_id)
                .filter_by(subject=subject, team_room_id=team_room_id).all())
        return {r[0] for r in rows}
    return rule_completer_ids(team_room_id)


def has_voted(subject: str, team_room_id: int, member_id: int) -> bool:
    """Whether the member has a committed submission for the subject.

    For the rule subject a member counts as voted once every active
    template has a vote.
    """
    if submission_mode(subject) == SUBMISSION_BULK:
        return db.session.query(
            VoteBallot.query.filter_by(
                subject=subject, team_room_id=team_room_id, member_id=member_id,
            ).exists()
        ).scalar()
    return member_id in rule_completer_ids(team_room_id)


def tally(subject: str, team_room_id: int):
    """Aggregate committed votes of a subject.

    Returns:
        tool     {category_id: {tool_id: count}}
        rule     {rule_template_id: {"agree": n, "disagree": m}} over members
                 who voted on every active template
        meeting  [{"member_id", "bitmaps", "preferred_block"}, ...]
    """
    submission_mode(subject)
    if subject == "tool":
        rows = (
            db.session.query(ToolVote.category_id, ToolVote.tool_id, func.count(ToolVote.id))
            .filter(ToolVote.team_room_id == team_room_id)
            .group_by(ToolVote.category_id, ToolVote.tool_id)
            .all()
        )
        result: dict[int, dict[int, int]] = {}
        for category_id, tool_id, count in rows:
            result.setdefault(category_id, {})[tool_id] = count
        return result

    if subject == "rule":
        completers = rule_completer_ids(team_room_id)
        result = {tid: {"agree": 0, "disagree": 0} for tid in active_rule_template_ids()}
        if not completers:
            return result
        votes = RuleVote.query.filter(
            RuleVote.team_room_id == team_room_id,
            RuleVote.member_id.in_(completers),
            RuleVote.rule_template_id.in_(list(result)),
        ).all()
        for v in votes:
            result[v.rule_template_id]["agree" if v.is_agree else "disagree"] += 1
        return result

    rows = (MeetingAvailability.query
            .filter_by(team_room_id=team_room_id)
            .order_by(MeetingAvailability.member_id).all())
    return [
        {"member_id": r.member_id, "bitmaps": r.bitmaps(), "preferred_block": r.preferred_block}
        for r in rows
    ]


def list_participation(subject: str, team_room_id: int) -> dict:
    """Partition the team's members into voted / not voted."""
    members = (TeamMember.query.filter_by(team_room_id=team_room_id)
               .order_by(TeamMember.id).all())
    voted_ids = _voted_member_ids(subject, team_room_id)
    voted = [m.to_dict() for m in members if m.id in voted_ids]
    not_voted = [m.to_dict() for m in members if m.id not in voted_ids]
    return {
        "subject": subject,
        "total": len(members),
        "voted_count": len(voted),
        "voted_members": voted,
        "not_voted_members": not_voted,
    }
