"""
Resume slot models and the mapping between them and stored documents.

In storage a user is a flat document with dynamic ``resume1``, ``resume1_html``,
``resume2``, ... keys. In memory the slots are an explicit list where index 0
is slot 1 and ``None`` marks a free slot.
"""

import json
import re
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

SLOT_KEY_PATTERN = re.compile(r"^resume([1-9]\d*)$")
HTML_KEY_PATTERN = re.compile(r"^resume([1-9]\d*)_html$")

# Keys a document store may embed in stored payloads
IDENTITY_KEYS = frozenset({"_id"})

PROFILE_FIELDS = ("first_name", "last_name", "linkedin_url", "github_url")

# Stored field names for the scalar attributes
_FIELD_MAP = {
    "subscription_tier": "user_subscription",
    "ats_score": "ats_score",
    "active_webpage_count": "Active_webpage",
    "total_resumes_parsed": "total_resumes_parsed",
    "total_webpages_created": "total_webpages_created",
    "liked_job_ids": "liked_job_ids",
}


def slot_key(slot: int) -> str:
    return f"resume{slot}"


def html_key(slot: int) -> str:
    return f"resume{slot}_html"


def parse_slot_key(key: str) -> Optional[int]:
    """Return the slot number for a ``resumeN`` key, or None."""
    match = SLOT_KEY_PATTERN.match(key) if isinstance(key, str) else None
    return int(match.group(1)) if match else None


def strip_identity(value: Any) -> Any:
    """Remove store-generated identity keys at any depth.

    Integral floats become ints, so ``1.0`` and ``1`` compare equal the way
    the store compares numbers. Booleans are left alone.
    """
    if isinstance(value, dict):
        return {k: strip_identity(v) for k, v in value.items() if k not in IDENTITY_KEYS}
    if isinstance(value, list):
        return [strip_identity(v) for v in value]
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def canonical_payload(value: Any) -> str:
    """Serialize a payload so structurally equal payloads compare equal."""
    return json.dumps(
        strip_identity(value),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str
    )


def payloads_equal(a: Any, b: Any) -> bool:
    return canonical_payload(a) == canonical_payload(b)


def _as_count(value: Any) -> int:
    """Stored counters may be missing or malformed in legacy documents."""
    if isinstance(value, bool):
        return int(value)
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0


def _as_score(value: Any) -> Optional[Union[int, float]]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


class SlotContent(BaseModel):
    """One occupied slot: the opaque resume payload and its rendered HTML."""
    payload: Any = Field(description="Structured resume content, stored as-is")
    html: Optional[str] = Field(default=None, description="Rendered HTML for the slot's webpage")


class UserRecord(BaseModel):
    """A user's resume slots, tier and dashboard counters."""
    email: str = Field(description="Identity key, immutable after creation")
    subscription_tier: int = Field(default=1, description="Subscription tier governing slot capacity")
    ats_score: Optional[Union[int, float]] = Field(default=None, description="Last caller-supplied ATS score")
    active_webpage_count: int = Field(default=0, description="Derived: number of occupied slots")
    total_resumes_parsed: int = Field(default=0, description="Accepted submissions, never decreases")
    total_webpages_created: int = Field(default=0, description="Webpages created, never decreases")
    slots: List[Optional[SlotContent]] = Field(default_factory=list)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    linkedin_url: Optional[str] = None
    github_url: Optional[str] = None
    liked_job_ids: List[str] = Field(default_factory=list)
    extra_fields: Dict[str, Any] = Field(default_factory=dict, description="Unrecognized stored fields, kept untouched")
    version: int = Field(default=0, description="Store version the record was loaded at")

    # =====================
    # Slot access
    # =====================

    def occupied_slots(self) -> List[int]:
        """Slot numbers holding a payload, ascending."""
        return [i + 1 for i, content in enumerate(self.slots) if content is not None]

    @property
    def occupied_count(self) -> int:
        return sum(1 for content in self.slots if content is not None)

    def get_slot(self, slot: int) -> Optional[SlotContent]:
        if slot < 1 or slot > len(self.slots):
            return None
        return self.slots[slot - 1]

    def set_slot(self, slot: int, content: Optional[SlotContent]) -> None:
        if slot < 1:
            raise ValueError(f"Slot numbers start at 1, got {slot}")
        while len(self.slots) < slot:
            self.slots.append(None)
        self.slots[slot - 1] = content
        # Keep no trailing free slots
        while self.slots and self.slots[-1] is None:
            self.slots.pop()

    def lowest_free_slot(self, capacity: int) -> Optional[int]:
        """Lowest unoccupied slot number <= capacity, or None when all are taken."""
        for slot in range(1, capacity + 1):
            if self.get_slot(slot) is None:
                return slot
        return None

    def find_duplicate(self, payload: Any, exclude: Optional[int] = None) -> Optional[int]:
        """Slot number of an occupied slot whose payload equals ``payload``."""
        target = canonical_payload(payload)
        for slot in self.occupied_slots():
            if slot == exclude:
                continue
            if canonical_payload(self.slots[slot - 1].payload) == target:
                return slot
        return None

    def reconcile_counters(self) -> bool:
        """
        Recompute derived counters from the occupied slots.

        Returns:
            True if anything changed
        """
        actual = self.occupied_count
        if self.active_webpage_count == actual:
            return False
        logger.info(
            f"Reconciling {self.email}: Active_webpage {self.active_webpage_count} -> {actual}"
        )
        self.active_webpage_count = actual
        return True

    # =====================
    # Document mapping
    # =====================

    def to_document(self) -> Dict[str, Any]:
        """Flatten to the stored document shape (without the version stamp)."""
        document: Dict[str, Any] = {"email": self.email}
        for attr, stored in _FIELD_MAP.items():
            value = getattr(self, attr)
            document[stored] = list(value) if isinstance(value, list) else value

        for name in PROFILE_FIELDS:
            value = getattr(self, name)
            if value is not None:
                document[name] = value

        document.update(self.extra_fields)

        for slot in self.occupied_slots():
            content = self.slots[slot - 1]
            document[slot_key(slot)] = content.payload
            if content.html is not None:
                document[html_key(slot)] = content.html
        return document

    @classmethod
    def from_document(cls, fields: Dict[str, Any], version: int = 0) -> "UserRecord":
        """Build a record from a stored document, tolerating legacy gaps."""
        payloads: Dict[int, Any] = {}
        htmls: Dict[int, str] = {}
        extra: Dict[str, Any] = {}
        known = set(_FIELD_MAP.values()) | set(PROFILE_FIELDS) | {"email"}

        for key, value in fields.items():
            slot = parse_slot_key(key)
            if slot is not None:
                if value is not None:
                    payloads[slot] = value
                continue
            html_match = HTML_KEY_PATTERN.match(key)
            if html_match:
                if value is not None:
                    htmls[int(html_match.group(1))] = value
                continue
            if key not in known:
                extra[key] = value

        slots: List[Optional[SlotContent]] = []
        for slot in sorted(payloads):
            while len(slots) < slot - 1:
                slots.append(None)
            slots.append(SlotContent(payload=payloads[slot], html=htmls.get(slot)))

        orphaned = set(htmls) - set(payloads)
        if orphaned:
            logger.debug(f"Dropping HTML for empty slots {sorted(orphaned)} of {fields.get('email')}")

        liked = fields.get("liked_job_ids") or []
        return cls(
            email=fields["email"],
            subscription_tier=_as_count(fields.get("user_subscription")) or 1,
            ats_score=_as_score(fields.get("ats_score")),
            active_webpage_count=_as_count(fields.get("Active_webpage")),
            total_resumes_parsed=_as_count(fields.get("total_resumes_parsed")),
            total_webpages_created=_as_count(fields.get("total_webpages_created")),
            slots=slots,
            first_name=fields.get("first_name"),
            last_name=fields.get("last_name"),
            linkedin_url=fields.get("linkedin_url"),
            github_url=fields.get("github_url"),
            liked_job_ids=[str(job_id) for job_id in liked],
            extra_fields=extra,
            version=version
        )


class OutcomeStatus(Enum):
    """How an accepted submission was stored."""
    CREATED = "created"    # New user record, slot 1
    ASSIGNED = "assigned"  # Existing user, next free slot


@dataclass
class SubmissionOutcome:
    """Result of an accepted resume submission."""
    status: OutcomeStatus
    slot: int
    capacity: int
    record: Optional[UserRecord] = None

    @property
    def created(self) -> bool:
        return self.status == OutcomeStatus.CREATED

    @property
    def slot_key(self) -> str:
        return slot_key(self.slot)

    @property
    def message(self) -> str:
        if self.created:
            return f"User created with {self.slot_key}"
        return f"New resume saved to {self.slot_key}"


@dataclass
class ResumeView:
    """Read-only projection of one occupied slot."""
    slot: int
    payload: Any
    html: Optional[str] = None

    @property
    def slot_key(self) -> str:
        return slot_key(self.slot)

    def to_dict(self) -> dict:
        return {"slot": self.slot_key, "data": self.payload, "html": self.html}


@dataclass
class ResumeListing:
    """A user's occupied slots together with their quota position."""
    email: str
    resumes: List[ResumeView]
    subscription_tier: int
    max_allowed: int

    def to_dict(self) -> dict:
        return {
            "email": self.email,
            "resumes": [view.to_dict() for view in self.resumes],
            "subscription_tier": self.subscription_tier,
            "max_resumes_allowed": self.max_allowed,
            "current_resume_count": len(self.resumes)
        }


@dataclass
class DashboardView:
    """Dashboard metrics, after counter reconciliation."""
    ats_score: Optional[Union[int, float]]
    active_webpage_count: int
    resume_count: int
    subscription_tier: int
    total_resumes_parsed: int
    total_webpages_created: int
    max_allowed: int

    def to_dict(self) -> dict:
        return {
            "ats_score": self.ats_score,
            "active_webpages": self.active_webpage_count,
            "resume_count": self.resume_count,
            "subscription_tier": self.subscription_tier,
            "total_resumes_parsed": self.total_resumes_parsed,
            "total_webpages_created": self.total_webpages_created,
            "max_resumes_allowed": self.max_allowed
        }
