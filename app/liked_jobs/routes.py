"""
Liked job routes.
"""
from flask import Blueprint, request, jsonify

from app.error_handlers import get_json_body
from app.exceptions import ValidationError
from app.resume_slots import ResumeSlotService


def create_liked_jobs_routes(resume_service: ResumeSlotService) -> Blueprint:
    """Create liked jobs routes blueprint."""
    bp = Blueprint('liked_jobs', __name__, url_prefix='/jobs')

    def _require_email_and_job(data: dict):
        if not data.get("email") or data.get("job_id") in (None, ""):
            raise ValidationError("Email and job_id are required")
        return data["email"], data["job_id"]

    @bp.route("/liked", methods=["GET"])
    def get_liked_jobs():
        email = request.args.get("email", "").strip()
        if not email:
            raise ValidationError("Email is required")
        return jsonify({"email": email, "liked_job_ids": resume_service.get_liked_jobs(email)})

    @bp.route("/liked", methods=["POST"])
    def like_job():
        email, job_id = _require_email_and_job(get_json_body())
        liked = resume_service.like_job(email, job_id)
        return jsonify({"message": "Job liked", "liked_job_ids": liked})

    @bp.route("/liked", methods=["DELETE"])
    def unlike_job():
        email, job_id = _require_email_and_job(get_json_body())
        liked = resume_service.unlike_job(email, job_id)
        return jsonify({"message": "Job unliked", "liked_job_ids": liked})

    return bp
