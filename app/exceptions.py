"""
Error taxonomy for the resume slot store.

Every error carries the HTTP status it maps to and renders to the stable
JSON shape ``{"error": str, "details"?: str}``.
"""

from typing import Any, Dict, Optional


class ResumeStoreError(Exception):
    """
    Base class for all errors raised by the store, the quota policy and the engine.

    Attributes:
        message: Short, caller-facing error description
        details: Optional extra context (what to fix, what to do next)
    """

    status_code = 500

    def __init__(self, message: str, details: Optional[str] = None):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(ResumeStoreError):
    """Missing or malformed input. The caller must fix the request."""

    status_code = 400


class InvalidTier(ValidationError):
    """Subscription tier outside the capacity table."""

    def __init__(self, tier: Any, allowed=None):
        self.tier = tier
        details = None
        if allowed:
            details = f"Allowed tiers: {', '.join(str(t) for t in sorted(allowed))}"
        super().__init__(f"Invalid subscription tier: {tier!r}", details)


class DowngradeConflict(ResumeStoreError):
    """Tier change would leave more occupied slots than the new tier allows."""

    status_code = 400

    def __init__(self, occupied: int, capacity: int, tier: int):
        self.occupied = occupied
        self.capacity = capacity
        self.tier = tier
        super().__init__(
            f"Cannot change to tier {tier}: {occupied} resumes stored, tier allows {capacity}",
            "Remove resumes before downgrading.",
        )


class NotFound(ResumeStoreError):
    """Unknown email or slot."""

    status_code = 404


class Duplicate(ResumeStoreError):
    """Submitted payload is content-equal to an occupied slot."""

    status_code = 409

    def __init__(self, slot: int):
        self.slot = slot
        super().__init__(f"This resume already exists as resume{slot}")


class QuotaExceeded(ResumeStoreError):
    """Every slot allowed by the tier is occupied."""

    status_code = 403

    def __init__(self, capacity: int):
        self.capacity = capacity
        super().__init__(
            f"Maximum {capacity} resumes allowed for your plan.",
            "Upgrade your subscription to store more resumes.",
        )


class DuplicateIdentity(ResumeStoreError):
    """A record already exists for the email being created."""

    status_code = 409

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Record already exists for {email}")


class Conflict(ResumeStoreError):
    """The record was modified by another writer since it was loaded."""

    status_code = 409

    def __init__(self, email: str, expected_version: int, actual_version: int):
        self.email = email
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Concurrent update on {email}",
            f"expected version {expected_version}, found {actual_version}",
        )


class ContentionExhausted(ResumeStoreError):
    """Write retries ran out under concurrent updates to the same record."""

    status_code = 503

    def __init__(self, email: str, attempts: int):
        self.email = email
        self.attempts = attempts
        super().__init__(
            "Too many concurrent updates, please retry",
            f"gave up after {attempts} attempts",
        )


class StoreUnavailable(ResumeStoreError):
    """The record store failed or is closed."""

    status_code = 503


class StoreTimeout(StoreUnavailable):
    """A store call did not complete within its timeout."""

    status_code = 504
