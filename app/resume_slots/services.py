"""
Resume slot service: slot allocation, duplicate detection, quota enforcement
and dashboard counter reconciliation.

Every mutation is an optimistic read-modify-write: load the record, apply the
change, save with the loaded version. When another writer got there first the
store raises ``Conflict`` and the whole sequence (checks included) is redone
against the fresh record, up to ``max_write_retries`` attempts.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar, Union

from app.exceptions import (
    Conflict,
    ContentionExhausted,
    DowngradeConflict,
    Duplicate,
    DuplicateIdentity,
    InvalidTier,
    NotFound,
    QuotaExceeded,
    ValidationError,
)
from app.quota import SlotQuotaManager, SubscriptionTier
from app.record_store import RecordStore, StoredDocument
from .models import (
    PROFILE_FIELDS,
    DashboardView,
    OutcomeStatus,
    ResumeListing,
    ResumeView,
    SlotContent,
    SubmissionOutcome,
    UserRecord,
    parse_slot_key,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

NO_HTML_FOUND = "No HTML found"

# RFC 5321 path limit
MAX_EMAIL_LENGTH = 254


class ResumeSlotService:
    """Main service for per-user resume slots."""

    def __init__(self,
                 store: RecordStore,
                 quota_manager: SlotQuotaManager,
                 max_write_retries: int = 3):
        """
        Initialize the service.

        Args:
            store: Record store holding one document per email
            quota_manager: Tier -> capacity policy
            max_write_retries: Attempts per read-modify-write before giving up
        """
        if max_write_retries < 1:
            raise ValueError("max_write_retries must be at least 1")
        self.store = store
        self.quota_manager = quota_manager
        self.max_write_retries = max_write_retries

    # =====================
    # Input validation
    # =====================

    @staticmethod
    def _validate_email(email: Any) -> str:
        if not isinstance(email, str) or not email.strip():
            raise ValidationError("Email is required")
        email = email.strip()
        if len(email) > MAX_EMAIL_LENGTH:
            raise ValidationError("Invalid email", f"longer than {MAX_EMAIL_LENGTH} characters")
        if "@" not in email:
            raise ValidationError("Invalid email", f"{email!r} is not an email address")
        return email

    @staticmethod
    def _validate_payload(payload: Any) -> Any:
        if payload is None or (isinstance(payload, str) and not payload.strip()):
            raise ValidationError("Email and resume are required")
        return payload

    @staticmethod
    def _validate_score(ats_score: Any) -> Optional[Union[int, float]]:
        if ats_score is None:
            return None
        if isinstance(ats_score, bool):
            raise ValidationError("ats_score must be a number")
        if isinstance(ats_score, (int, float)):
            return ats_score
        if isinstance(ats_score, str):
            try:
                return float(ats_score.strip())
            except ValueError:
                pass
        raise ValidationError("ats_score must be a number", f"got {ats_score!r}")

    @staticmethod
    def _validate_html(html_content: Any) -> Optional[str]:
        if html_content is None:
            return None
        if not isinstance(html_content, str):
            raise ValidationError("html_content must be a string")
        return html_content

    @staticmethod
    def _validate_profile(profile: Optional[Dict[str, Any]]) -> Dict[str, str]:
        if not profile:
            return {}
        cleaned = {}
        for name in PROFILE_FIELDS:
            value = profile.get(name)
            if value is None:
                continue
            if not isinstance(value, str):
                raise ValidationError(f"{name} must be a string")
            cleaned[name] = value
        return cleaned

    @staticmethod
    def parse_slot_number(value: Any) -> int:
        """Accept ``2``, ``"2"`` or ``"resume2"``."""
        if isinstance(value, bool):
            raise ValidationError("Invalid resume number", f"got {value!r}")
        if isinstance(value, int):
            slot = value
        elif isinstance(value, str) and value.strip().isdigit():
            slot = int(value.strip())
        elif isinstance(value, str) and parse_slot_key(value.strip()) is not None:
            slot = parse_slot_key(value.strip())
        else:
            raise ValidationError("Invalid resume number", f"got {value!r}")
        if slot < 1:
            raise ValidationError("Invalid resume number", "resume numbers start at 1")
        return slot

    def _effective_tier(self, record: UserRecord) -> int:
        """Stored tier, falling back to FREE when the stored value is unknown."""
        try:
            return self.quota_manager.resolve_tier(record.subscription_tier)
        except InvalidTier:
            logger.warning(f"Unknown stored tier {record.subscription_tier!r} for {record.email}, using FREE")
            return int(SubscriptionTier.FREE)

    # =====================
    # Store access
    # =====================

    def _load(self, email: str) -> UserRecord:
        document = self.store.find(email)
        if document is None:
            raise NotFound("User not found", email)
        return UserRecord.from_document(document.fields, version=document.version)

    def _save(self, record: UserRecord) -> UserRecord:
        saved = self.store.save(StoredDocument(
            email=record.email,
            fields=record.to_document(),
            version=record.version
        ))
        record.version = saved.version
        return record

    def _read_modify_write(self, email: str,
                           mutate: Callable[[UserRecord], T]) -> Tuple[UserRecord, T]:
        """
        Load, mutate and save one record with bounded optimistic retries.

        ``mutate`` may raise to abort without writing. The record is only
        saved when ``mutate`` actually changed its stored form.
        """
        for attempt in range(1, self.max_write_retries + 1):
            record = self._load(email)
            before = record.to_document()
            result = mutate(record)
            if record.to_document() == before:
                return record, result
            try:
                return self._save(record), result
            except Conflict as e:
                logger.warning(
                    f"Write conflict on {email} (attempt {attempt}/{self.max_write_retries}): {e.details}"
                )
        raise ContentionExhausted(email, self.max_write_retries)

    # =====================
    # Submission
    # =====================

    def submit_resume(self,
                      email: str,
                      tier: Any = None,
                      ats_score: Any = None,
                      active_flag: Any = None,
                      payload: Any = None,
                      html_content: Optional[str] = None,
                      profile: Optional[Dict[str, Any]] = None) -> SubmissionOutcome:
        """
        Store a resume in the submitter's lowest free slot.

        Args:
            email: User identity
            tier: Subscription tier the submission is made under; the stored
                tier (or FREE for new users) when None
            ats_score: Pre-computed ATS score, replaces the stored one when given
            active_flag: Caller's ``Active_webpage`` value; the stored count is
                always derived from occupied slots instead
            payload: Opaque resume content
            html_content: Rendered HTML stored alongside the payload
            profile: Optional first_name/last_name/linkedin_url/github_url

        Returns:
            SubmissionOutcome (CREATED in slot 1, or ASSIGNED to a slot)

        Raises:
            ValidationError / InvalidTier: Bad input, nothing stored
            Duplicate: Payload already stored, nothing changed
            QuotaExceeded: Every slot of the tier occupied, nothing changed
            ContentionExhausted: Retries ran out under concurrent writes
        """
        email = self._validate_email(email)
        payload = self._validate_payload(payload)
        requested_tier = self.quota_manager.resolve_tier(tier) if tier is not None else None
        ats_score = self._validate_score(ats_score)
        html_content = self._validate_html(html_content)
        profile = self._validate_profile(profile)

        if active_flag is not None:
            logger.debug(f"Ignoring caller Active_webpage={active_flag!r} for {email}, count is derived")

        for attempt in range(1, self.max_write_retries + 1):
            document = self.store.find(email)

            if document is None:
                outcome = self._create_record(email, requested_tier, ats_score, payload, html_content, profile)
                if outcome is not None:
                    return outcome
                logger.warning(
                    f"Record for {email} created concurrently (attempt {attempt}/{self.max_write_retries})"
                )
                continue

            record = UserRecord.from_document(document.fields, version=document.version)
            effective_tier = requested_tier if requested_tier is not None else self._effective_tier(record)
            capacity = self.quota_manager.capacity(effective_tier)

            duplicate_slot = record.find_duplicate(payload)
            if duplicate_slot is not None:
                logger.info(f"Duplicate resume for {email}: matches resume{duplicate_slot}")
                raise Duplicate(duplicate_slot)

            quota_result = self.quota_manager.check_capacity(record.occupied_count, effective_tier)
            if not quota_result.allowed:
                raise QuotaExceeded(capacity)

            slot = record.lowest_free_slot(capacity)
            if slot is None:
                raise QuotaExceeded(capacity)

            record.set_slot(slot, SlotContent(payload=payload, html=html_content))
            if ats_score is not None:
                record.ats_score = ats_score
            record.subscription_tier = effective_tier
            record.total_resumes_parsed += 1
            record.total_webpages_created += 1
            record.reconcile_counters()
            for name, value in profile.items():
                setattr(record, name, value)

            try:
                self._save(record)
            except Conflict as e:
                logger.warning(
                    f"Write conflict on {email} (attempt {attempt}/{self.max_write_retries}): {e.details}"
                )
                continue

            logger.info(f"Stored resume for {email} in resume{slot} ({record.occupied_count}/{capacity})")
            return SubmissionOutcome(
                status=OutcomeStatus.ASSIGNED,
                slot=slot,
                capacity=capacity,
                record=record
            )

        raise ContentionExhausted(email, self.max_write_retries)

    def _create_record(self, email: str, tier: Optional[int], ats_score, payload: Any,
                       html_content: Optional[str], profile: Dict[str, str]) -> Optional[SubmissionOutcome]:
        """Create the user's record with slot 1 filled. None if the email was taken meanwhile."""
        tier = tier if tier is not None else int(SubscriptionTier.FREE)
        # An unknown tier must fail before anything is written
        capacity = self.quota_manager.capacity(tier)
        record = UserRecord(
            email=email,
            subscription_tier=tier,
            ats_score=ats_score,
            total_resumes_parsed=1,
            total_webpages_created=1,
            **profile
        )
        record.set_slot(1, SlotContent(payload=payload, html=html_content))
        record.reconcile_counters()

        try:
            created = self.store.create(email, record.to_document())
        except DuplicateIdentity:
            return None

        record.version = created.version
        logger.info(f"Created record for {email} with resume1 (tier {tier})")
        return SubmissionOutcome(
            status=OutcomeStatus.CREATED,
            slot=1,
            capacity=capacity,
            record=record
        )

    # =====================
    # Updates
    # =====================

    def update_slot(self, email: str, slot_number: Any, payload: Any,
                    html_content: Optional[str] = None) -> UserRecord:
        """
        Overwrite an occupied slot in place.

        HTML is replaced only when ``html_content`` is given. Occupancy and
        counters are untouched.

        Raises:
            NotFound: Unknown user or empty slot
            Duplicate: Payload equals another occupied slot
        """
        email = self._validate_email(email)
        slot = self.parse_slot_number(slot_number)
        payload = self._validate_payload(payload)
        html_content = self._validate_html(html_content)

        def mutate(record: UserRecord) -> None:
            current = record.get_slot(slot)
            if current is None:
                raise NotFound(f"resume{slot} not found", email)
            duplicate_slot = record.find_duplicate(payload, exclude=slot)
            if duplicate_slot is not None:
                raise Duplicate(duplicate_slot)
            html = html_content if html_content is not None else current.html
            record.set_slot(slot, SlotContent(payload=payload, html=html))

        record, _ = self._read_modify_write(email, mutate)
        logger.info(f"Updated resume{slot} for {email}")
        return record

    def update_score(self, email: str, ats_score: Any) -> UserRecord:
        """Replace the stored ATS score."""
        email = self._validate_email(email)
        if ats_score is None:
            raise ValidationError("Email and ats_score are required")
        ats_score = self._validate_score(ats_score)

        def mutate(record: UserRecord) -> None:
            record.ats_score = ats_score

        record, _ = self._read_modify_write(email, mutate)
        logger.info(f"Updated ATS score for {email}: {ats_score}")
        return record

    def change_tier(self, email: str, new_tier: Any) -> UserRecord:
        """
        Move a user to another subscription tier.

        Raises:
            InvalidTier: Tier not in the capacity table
            DowngradeConflict: More slots occupied than the new tier allows
        """
        email = self._validate_email(email)
        if new_tier is None:
            raise ValidationError("Email and new_subscription_tier are required")
        tier = self.quota_manager.resolve_tier(new_tier)

        def mutate(record: UserRecord) -> None:
            result = self.quota_manager.check_downgrade(record.occupied_count, tier)
            if not result.allowed:
                raise DowngradeConflict(result.occupied, result.capacity, tier)
            record.subscription_tier = tier

        record, _ = self._read_modify_write(email, mutate)
        logger.info(f"Changed subscription for {email} to tier {tier}")
        return record

    # =====================
    # Reads
    # =====================

    def get_record(self, email: str) -> UserRecord:
        return self._load(self._validate_email(email))

    def list_resumes(self, email: str) -> ResumeListing:
        """Occupied slots in slot order, with the user's quota position."""
        record = self.get_record(email)
        tier = self._effective_tier(record)
        views = [
            ResumeView(slot=slot, payload=record.slots[slot - 1].payload, html=record.slots[slot - 1].html)
            for slot in record.occupied_slots()
        ]
        return ResumeListing(
            email=record.email,
            resumes=views,
            subscription_tier=tier,
            max_allowed=self.quota_manager.capacity(tier)
        )

    def get_resumes(self, email: str) -> List[ResumeView]:
        return self.list_resumes(email).resumes

    def get_resume_html(self, email: str, resume_key: Any) -> str:
        """
        HTML for one slot.

        Falls back to an ``HTML`` key inside the payload (older submissions
        embedded it there), then to ``"No HTML found"``.
        """
        email = self._validate_email(email)
        if not isinstance(resume_key, str) or parse_slot_key(resume_key.strip()) is None:
            raise ValidationError("Invalid resumeKey", f"expected resumeN, got {resume_key!r}")
        slot = parse_slot_key(resume_key.strip())

        content = self._load(email).get_slot(slot)
        if content is None:
            raise NotFound("Resume not found", resume_key)
        if content.html:
            return content.html
        if isinstance(content.payload, dict) and content.payload.get("HTML"):
            return content.payload["HTML"]
        return NO_HTML_FOUND

    def get_dashboard(self, email: str) -> DashboardView:
        """
        Dashboard metrics. ``Active_webpage`` is reconciled against the
        occupied slots first and the correction persisted when it drifted.
        """
        email = self._validate_email(email)
        record, changed = self._read_modify_write(email, lambda r: r.reconcile_counters())
        if changed:
            logger.warning(f"Corrected Active_webpage drift for {email}")

        tier = self._effective_tier(record)
        return DashboardView(
            ats_score=record.ats_score,
            active_webpage_count=record.active_webpage_count,
            resume_count=record.occupied_count,
            subscription_tier=tier,
            total_resumes_parsed=record.total_resumes_parsed,
            total_webpages_created=record.total_webpages_created,
            max_allowed=self.quota_manager.capacity(tier)
        )

    # =====================
    # Liked jobs
    # =====================

    @staticmethod
    def _validate_job_id(job_id: Any) -> str:
        if isinstance(job_id, bool) or not isinstance(job_id, (str, int)):
            raise ValidationError("Email and job_id are required")
        job_id = str(job_id).strip()
        if not job_id:
            raise ValidationError("Email and job_id are required")
        return job_id

    def like_job(self, email: str, job_id: Any) -> List[str]:
        """Add a job id to the user's liked list (no-op if already there)."""
        email = self._validate_email(email)
        job_id = self._validate_job_id(job_id)

        def mutate(record: UserRecord) -> None:
            if job_id not in record.liked_job_ids:
                record.liked_job_ids.append(job_id)

        record, _ = self._read_modify_write(email, mutate)
        return list(record.liked_job_ids)

    def unlike_job(self, email: str, job_id: Any) -> List[str]:
        """Remove a job id from the user's liked list (no-op if absent)."""
        email = self._validate_email(email)
        job_id = self._validate_job_id(job_id)

        def mutate(record: UserRecord) -> None:
            if job_id in record.liked_job_ids:
                record.liked_job_ids.remove(job_id)

        record, _ = self._read_modify_write(email, mutate)
        return list(record.liked_job_ids)

    def get_liked_jobs(self, email: str) -> List[str]:
        return list(self.get_record(email).liked_job_ids)
