"""
Resume slot routes: submission, in-place updates, listing and HTML lookup.
"""
from flask import Blueprint, request, jsonify

from app.error_handlers import get_json_body
from app.exceptions import ValidationError
from .models import PROFILE_FIELDS
from .services import ResumeSlotService


def create_resume_slot_routes(resume_service: ResumeSlotService) -> Blueprint:
    """Create resume slot routes."""
    bp = Blueprint('resume_slots', __name__)

    @bp.route("/resume", methods=["POST"])
    def submit_resume():
        """Store a resume in the user's next free slot."""
        data = get_json_body()
        if not data.get("email") or data.get("resume") in (None, ""):
            raise ValidationError("Email and resume are required")

        outcome = resume_service.submit_resume(
            email=data.get("email"),
            tier=data.get("user_subscription"),
            ats_score=data.get("ats_score"),
            active_flag=data.get("Active_webpage"),
            payload=data.get("resume"),
            html_content=data.get("html_content"),
            profile={name: data.get(name) for name in PROFILE_FIELDS}
        )
        status_code = 201 if outcome.created else 200
        return jsonify({"message": outcome.message, "slot": outcome.slot_key}), status_code

    @bp.route("/resume/update", methods=["PUT"])
    def update_resume():
        """Overwrite an existing slot."""
        data = get_json_body()
        if not data.get("email") or data.get("resume_number") is None or data.get("resume") in (None, ""):
            raise ValidationError("Email, resume_number and resume are required")

        slot = resume_service.parse_slot_number(data["resume_number"])
        resume_service.update_slot(
            email=data["email"],
            slot_number=slot,
            payload=data["resume"],
            html_content=data.get("html_content")
        )
        return jsonify({"message": f"resume{slot} updated"})

    @bp.route("/resume/ats", methods=["PUT"])
    def update_ats_score():
        """Replace the stored ATS score."""
        data = get_json_body()
        if not data.get("email") or data.get("ats_score") is None:
            raise ValidationError("Email and ats_score are required")

        resume_service.update_score(data["email"], data["ats_score"])
        return jsonify({"message": "ATS score updated"})

    @bp.route("/resume", methods=["GET"])
    def get_resumes():
        """List the user's occupied slots."""
        email = request.args.get("email", "").strip()
        if not email:
            raise ValidationError("Email is required")

        listing = resume_service.list_resumes(email)
        return jsonify(listing.to_dict())

    @bp.route("/html", methods=["GET"])
    def get_resume_html():
        """Get the stored HTML for one slot."""
        email = request.args.get("email", "").strip()
        resume_key = request.args.get("resumeKey", "").strip()
        if not email or not resume_key:
            raise ValidationError("Email and resumeKey required")

        html = resume_service.get_resume_html(email, resume_key)
        return jsonify({"email": email, "resumeKey": resume_key, "HTML": html})

    return bp
