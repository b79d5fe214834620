"""
Factory for creating the subscription module.
"""
from app.quota import SlotQuotaManager
from app.resume_slots import ResumeSlotService
from .routes import create_subscription_routes


def create_subscription_module(resume_service: ResumeSlotService,
                               quota_manager: SlotQuotaManager) -> dict:
    """
    Create the subscription module.

    Returns:
        Dictionary containing:
            - blueprint: Flask blueprint for routes
    """
    return {
        "blueprint": create_subscription_routes(resume_service, quota_manager)
    }
