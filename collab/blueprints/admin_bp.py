"""
Admin Blueprint — scheduled job management.

Endpoints:
    GET   /api/v1/admin/jobs                 — registered jobs with run history
    POST  /api/v1/admin/jobs/<name>/run      — run a job now (under its lease)
    PATCH /api/v1/admin/jobs/<name>/toggle   — enable / disable a job
"""

import logging

from flask import Blueprint, current_app, jsonify

from collab.core.exceptions import NotFoundError, ValidationError
from collab.utils.errors import E, api_error
from collab.utils.helpers import current_user_id, is_admin, json_body

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin_bp", __name__, url_prefix="/api/v1/admin")


@admin_bp.before_request
def _require_admin():
    """Every admin endpoint needs a gateway identity listed in ADMIN_USER_IDS."""
    user_id = current_user_id()
    if user_id is None:
        return api_error(E.UNAUTHORIZED, "Authentication required")
    if not is_admin(user_id):
        logger.warning("Admin access denied for user %s", user_id)
        return api_error(E.FORBIDDEN, "Administrator access required")
    return None


def _scheduler():
    return current_app.extensions["scheduler"]


@admin_bp.route("/jobs", methods=["GET"])
def list_jobs():
    scheduler = _scheduler()
    scheduler.ensure_jobs_registered()
    jobs = scheduler.list_jobs()
    return jsonify({"jobs": jobs, "total": len(jobs), "running": scheduler.running})


@admin_bp.route("/jobs/<job_name>/run", methods=["POST"])
def run_job(job_name):
    """Manually trigger a scheduled job."""
    result = _scheduler().run_job(job_name)
    if result.get("status") == "error" and "Unknown job" in result.get("error", ""):
        raise NotFoundError(resource="ScheduledJob", resource_id=job_name)
    if result.get("status") == "skipped":
        return jsonify(result), 409
    return jsonify(result)


@admin_bp.route("/jobs/<job_name>/toggle", methods=["PATCH"])
def toggle_job(job_name):
    """Enable or disable a scheduled job."""
    enabled = json_body().get("enabled")
    if not isinstance(enabled, bool):
        raise ValidationError("'enabled' field is required (true/false)")
    scheduler = _scheduler()
    scheduler.ensure_jobs_registered()
    result = scheduler.toggle_job(job_name, enabled)
    if not result:
        raise NotFoundError(resource="ScheduledJob", resource_id=job_name)
    return jsonify(result)
