"""
Factory for creating the liked jobs module.
"""
from app.resume_slots import ResumeSlotService
from .routes import create_liked_jobs_routes


def create_liked_jobs_module(resume_service: ResumeSlotService) -> dict:
    """Create the liked jobs module."""
    return {
        "blueprint": create_liked_jobs_routes(resume_service)
    }
