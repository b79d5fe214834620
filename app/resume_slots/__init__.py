"""
Resume slot module: per-user, tier-limited resume slots.
"""

from .models import (
    UserRecord,
    SlotContent,
    SubmissionOutcome,
    OutcomeStatus,
    ResumeView,
    ResumeListing,
    DashboardView,
)
from .services import ResumeSlotService
from .factory import create_resume_slots_module

__all__ = [
    "UserRecord",
    "SlotContent",
    "SubmissionOutcome",
    "OutcomeStatus",
    "ResumeView",
    "ResumeListing",
    "DashboardView",
    "ResumeSlotService",
    "create_resume_slots_module",
]
