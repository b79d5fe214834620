"""
Dashboard routes.
"""
from flask import Blueprint, request, jsonify

from app.exceptions import ValidationError
from app.resume_slots import ResumeSlotService


def create_dashboard_routes(resume_service: ResumeSlotService) -> Blueprint:
    """Create dashboard routes blueprint."""
    bp = Blueprint('dashboard', __name__)

    @bp.route("/dashboard", methods=["GET"])
    def get_dashboard():
        """Get ATS score, slot usage and lifetime counters for a user.

        ``active_webpages`` is recomputed from the occupied slots and written
        back when the stored value has drifted.
        """
        email = request.args.get("email", "").strip()
        if not email:
            raise ValidationError("Email is required")

        view = resume_service.get_dashboard(email)
        return jsonify(view.to_dict())

    return bp
