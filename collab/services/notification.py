"""
Team Collaboration Setup Engine
Notification Service.

Creates and queries in-app notifications for team rooms. Confirmation
events (tools, rules, meeting, setup completed) are broadcast to the room.
"""

from datetime import datetime, timezone

from collab.models import db
from collab.models.notification import Notification


class NotificationService:
    """Stateless service class for notification operations."""

    # ── Create ────────────────────────────────────────────────────────────

    @staticmethod
    def create(*, title, message="", category="system", severity="info",
               recipient="all", team_room_id=None, entity_type="", entity_id=None):
        """
        Create a single notification record.

        Returns:
            The created Notification instance (already committed).
        """
        notif = Notification(
            team_room_id=team_room_id,
            recipient=recipient,
            title=title,
            message=message,
            category=category,
            severity=severity,
            entity_type=entity_type,
            entity_id=entity_id,
        )
        db.session.add(notif)
        db.session.commit()
        return notif

    @staticmethod
    def broadcast(*, title, message="", category="system", severity="info",
                  team_room_id=None, entity_type="", entity_id=None,
                  recipients=None):
        """
        Send a notification to multiple recipients (or 'all' if none given).

        Returns:
            List of created Notification instances.
        """
        targets = recipients or ["all"]
        notifications = []
        for r in targets:
            notif = Notification(
                team_room_id=team_room_id,
                recipient=str(r),
                title=title,
                message=message,
                category=category,
                severity=severity,
                entity_type=entity_type,
                entity_id=entity_id,
            )
            db.session.add(notif)
            notifications.append(notif)
        db.session.commit()
        return notifications

    # ── Query ─────────────────────────────────────────────────────────────

    @staticmethod
    def list_for_team_room(team_room_id, recipient=None, unread_only=False,
                           limit=50, offset=0):
        """Notifications of a team room, newest first."""
        q = Notification.query.filter_by(team_room_id=team_room_id)
        if recipient:
            q = q.filter(
                (Notification.recipient == str(recipient)) | (Notification.recipient == "all")
            )
        if unread_only:
            q = q.filter_by(is_read=False)
        total = q.count()
        items = (q.order_by(Notification.created_at.desc(), Notification.id.desc())
                 .offset(offset).limit(limit).all())
        return items, total

    # ── Actions ───────────────────────────────────────────────────────────

    @staticmethod
    def mark_read(notification_id):
        """Mark a single notification as read."""
        notif = db.session.get(Notification, notification_id)
        if notif:
            notif.mark_read()
            db.session.commit()
        return notif

    @staticmethod
    def mark_all_read(team_room_id, recipient):
        q = Notification.query.filter_by(team_room_id=team_room_id, is_read=False).filter(
            (Notification.recipient == str(recipient)) | (Notification.recipient == "all")
        )
        now = datetime.now(timezone.utc)
        count = q.update({"is_read": True, "read_at": now}, synchronize_session="fetch")
        db.session.commit()
        return count

    # ── Setup event helpers ───────────────────────────────────────────────

    @staticmethod
    def notify_subject_confirmed(team_room_id, subject, summary=""):
        titles = {
            "tool": "Collaboration tools confirmed",
            "rule": "Team rules confirmed",
            "meeting": "Regular meeting confirmed",
        }
        return NotificationService.create(
            title=titles.get(subject, f"{subject} confirmed"),
            message=summary,
            category=subject,
            severity="success",
            team_room_id=team_room_id,
            entity_type="team_room",
            entity_id=team_room_id,
        )

    @staticmethod
    def notify_setup_completed(team_room_id):
        return NotificationService.create(
            title="Team setup completed",
            message="Tools, rules and the regular meeting are all confirmed.",
            category="setup",
            severity="success",
            team_room_id=team_room_id,
            entity_type="team_room",
            entity_id=team_room_id,
        )
