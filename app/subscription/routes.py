"""
Subscription administration routes.
"""
from flask import Blueprint, jsonify

from app.error_handlers import get_json_body
from app.exceptions import ValidationError
from app.quota import SlotQuotaManager
from app.resume_slots import ResumeSlotService


def create_subscription_routes(resume_service: ResumeSlotService,
                               quota_manager: SlotQuotaManager) -> Blueprint:
    """Create subscription admin routes blueprint."""
    bp = Blueprint('subscription', __name__, url_prefix='/admin')

    @bp.route("/subscription", methods=["PUT"])
    def change_subscription():
        """Move a user to another tier. Downgrades below current usage are rejected."""
        data = get_json_body()
        if not data.get("email") or data.get("new_subscription_tier") is None:
            raise ValidationError("Email and new_subscription_tier are required")

        record = resume_service.change_tier(data["email"], data["new_subscription_tier"])
        tier = record.subscription_tier
        return jsonify({
            "message": f"Subscription for {record.email} changed to tier {tier}",
            "max_resumes_allowed": quota_manager.capacity(tier)
        })

    @bp.route("/tiers", methods=["GET"])
    def list_tiers():
        """Get the configured tier capacity table."""
        return jsonify({"tiers": quota_manager.table.to_dict()})

    return bp
