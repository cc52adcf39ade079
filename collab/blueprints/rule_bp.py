"""
Rule Blueprint.

Endpoints:
    GET /api/v1/rules/templates   — active rule templates every member votes on
"""

from flask import Blueprint, jsonify

from collab.services.tracks.rule_track import list_active_templates

rule_bp = Blueprint("rule_bp", __name__, url_prefix="/api/v1")


@rule_bp.route("/rules/templates", methods=["GET"])
def list_templates():
    templates = list_active_templates()
    return jsonify({"items": [t.to_dict() for t in templates], "total": len(templates)})
