"""
Factory for creating the dashboard module.
"""
from app.resume_slots import ResumeSlotService
from .routes import create_dashboard_routes


def create_dashboard_module(resume_service: ResumeSlotService) -> dict:
    """
    Create the dashboard module.

    Args:
        resume_service: Shared resume slot service

    Returns:
        Dictionary containing:
            - blueprint: Flask blueprint for routes
    """
    return {
        "blueprint": create_dashboard_routes(resume_service)
    }
