"""
Factory for creating the resume slot module.
"""
from app.quota import SlotQuotaManager
from app.record_store import RecordStore
from .services import ResumeSlotService
from .routes import create_resume_slot_routes


def create_resume_slots_module(
    store: RecordStore,
    quota_manager: SlotQuotaManager,
    max_write_retries: int = 3
) -> dict:
    """Create resume slot module with service and routes.

    Args:
        store: Record store shared by every module of the app
        quota_manager: Tier capacity policy
        max_write_retries: Optimistic write attempts per operation

    Returns:
        Dictionary containing the service and blueprint
    """
    resume_service = ResumeSlotService(
        store=store,
        quota_manager=quota_manager,
        max_write_retries=max_write_retries
    )

    blueprint = create_resume_slot_routes(resume_service)

    return {
        "service": resume_service,
        "blueprint": blueprint
    }
