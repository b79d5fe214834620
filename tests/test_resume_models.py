"""
Tests for resume slot models and their stored-document mapping.
"""

from app.resume_slots.models import (
    DashboardView,
    ResumeListing,
    ResumeView,
    SlotContent,
    SubmissionOutcome,
    OutcomeStatus,
    UserRecord,
    canonical_payload,
    parse_slot_key,
    payloads_equal,
    strip_identity,
)


class TestPayloadEquality:
    """Duplicate detection compares content, not storage artefacts."""

    def test_key_order_does_not_matter(self):
        assert payloads_equal({"a": 1, "b": {"x": 1, "y": 2}}, {"b": {"y": 2, "x": 1}, "a": 1})

    def test_identity_keys_are_ignored_at_any_depth(self):
        stored = {"_id": "abc", "name": "A", "jobs": [{"_id": "j1", "title": "Dev"}]}
        submitted = {"name": "A", "jobs": [{"title": "Dev"}]}
        assert payloads_equal(stored, submitted)

    def test_list_order_matters(self):
        assert not payloads_equal({"skills": ["py", "go"]}, {"skills": ["go", "py"]})

    def test_strings_compare_as_is(self):
        assert payloads_equal("plain text resume", "plain text resume")
        assert not payloads_equal("plain text resume", "Plain text resume")

    def test_strip_identity_leaves_input_untouched(self):
        payload = {"_id": 1, "name": "A"}
        assert strip_identity(payload) == {"name": "A"}
        assert payload == {"_id": 1, "name": "A"}

    def test_integral_floats_equal_ints(self):
        assert payloads_equal({"years": 1, "gpa": [4]}, {"years": 1.0, "gpa": [4.0]})
        assert not payloads_equal({"gpa": 3.5}, {"gpa": 3})

    def test_booleans_are_not_numbers(self):
        assert strip_identity({"remote": True}) == {"remote": True}
        assert not payloads_equal({"remote": True}, {"remote": 1.0})

    def test_canonical_payload_is_stable(self):
        assert canonical_payload({"b": 1, "a": 2}) == '{"a":2,"b":1}'


class TestSlotKeys:

    def test_parse_slot_key(self):
        assert parse_slot_key("resume1") == 1
        assert parse_slot_key("resume12") == 12
        assert parse_slot_key("resume0") is None
        assert parse_slot_key("resume1_html") is None
        assert parse_slot_key("resumes") is None
        assert parse_slot_key(None) is None


class TestUserRecordSlots:
    """In-memory slot list behaviour."""

    def test_lowest_free_slot_fills_gaps(self):
        record = UserRecord(email="a@x.com")
        record.set_slot(1, SlotContent(payload="one"))
        record.set_slot(3, SlotContent(payload="three"))

        assert record.occupied_slots() == [1, 3]
        assert record.lowest_free_slot(3) == 2

    def test_lowest_free_slot_none_when_full(self):
        record = UserRecord(email="a@x.com")
        for slot in (1, 2, 3):
            record.set_slot(slot, SlotContent(payload=str(slot)))
        assert record.lowest_free_slot(3) is None
        assert record.lowest_free_slot(10) == 4

    def test_clearing_last_slot_trims_list(self):
        record = UserRecord(email="a@x.com")
        record.set_slot(2, SlotContent(payload="two"))
        record.set_slot(2, None)
        assert record.slots == []

    def test_find_duplicate_with_exclude(self):
        record = UserRecord(email="a@x.com")
        record.set_slot(1, SlotContent(payload={"n": 1}))
        record.set_slot(2, SlotContent(payload={"n": 2}))

        assert record.find_duplicate({"n": 2}) == 2
        assert record.find_duplicate({"n": 2}, exclude=2) is None
        assert record.find_duplicate({"n": 3}) is None

    def test_reconcile_counters(self):
        record = UserRecord(email="a@x.com", active_webpage_count=5)
        record.set_slot(1, SlotContent(payload="one"))

        assert record.reconcile_counters() is True
        assert record.active_webpage_count == 1
        assert record.reconcile_counters() is False


class TestDocumentMapping:
    """Stored document <-> UserRecord."""

    def test_from_document_with_gap(self):
        record = UserRecord.from_document({
            "email": "a@x.com",
            "user_subscription": 2,
            "ats_score": 81.5,
            "Active_webpage": 2,
            "total_resumes_parsed": 4,
            "resume1": {"name": "A"},
            "resume1_html": "<p>A</p>",
            "resume3": {"name": "C"},
            "_id": "mongo-id",
        }, version=7)

        assert record.occupied_slots() == [1, 3]
        assert record.get_slot(1).html == "<p>A</p>"
        assert record.get_slot(2) is None
        assert record.get_slot(3).html is None
        assert record.subscription_tier == 2
        assert record.ats_score == 81.5
        assert record.total_resumes_parsed == 4
        assert record.total_webpages_created == 0
        assert record.extra_fields == {"_id": "mongo-id"}
        assert record.version == 7

    def test_null_slot_is_free(self):
        record = UserRecord.from_document({"email": "a@x.com", "resume1": None, "resume2": "two"})
        assert record.occupied_slots() == [2]

    def test_orphan_html_is_dropped(self):
        record = UserRecord.from_document({"email": "a@x.com", "resume2_html": "<p/>"})
        assert record.occupied_slots() == []
        assert "resume2_html" not in record.to_document()

    def test_malformed_counters_are_coerced(self):
        record = UserRecord.from_document({
            "email": "a@x.com",
            "Active_webpage": "3",
            "total_resumes_parsed": "lots",
            "ats_score": "high",
            "user_subscription": None,
        })
        assert record.active_webpage_count == 3
        assert record.total_resumes_parsed == 0
        assert record.ats_score is None
        assert record.subscription_tier == 1

    def test_to_document_shape(self):
        record = UserRecord(email="a@x.com", subscription_tier=1, first_name="Ada",
                            liked_job_ids=["j1"], extra_fields={"_id": "x"})
        record.set_slot(1, SlotContent(payload={"name": "A"}, html="<p>A</p>"))
        record.set_slot(2, SlotContent(payload="text"))
        record.reconcile_counters()

        document = record.to_document()

        assert document["email"] == "a@x.com"
        assert document["user_subscription"] == 1
        assert document["Active_webpage"] == 2
        assert document["resume1"] == {"name": "A"}
        assert document["resume1_html"] == "<p>A</p>"
        assert document["resume2"] == "text"
        assert "resume2_html" not in document
        assert document["first_name"] == "Ada"
        assert "last_name" not in document
        assert document["liked_job_ids"] == ["j1"]
        assert document["_id"] == "x"

    def test_unknown_fields_survive_a_round_trip(self):
        fields = {"email": "a@x.com", "resume1": "r", "legacy_flag": True, "notes": {"k": 1}}
        document = UserRecord.from_document(fields).to_document()
        assert document["legacy_flag"] is True
        assert document["notes"] == {"k": 1}


class TestViews:

    def test_submission_outcome_messages(self):
        created = SubmissionOutcome(status=OutcomeStatus.CREATED, slot=1, capacity=3)
        assigned = SubmissionOutcome(status=OutcomeStatus.ASSIGNED, slot=2, capacity=3)
        assert created.message == "User created with resume1"
        assert assigned.message == "New resume saved to resume2"
        assert assigned.slot_key == "resume2"

    def test_resume_listing_to_dict(self):
        listing = ResumeListing(
            email="a@x.com",
            resumes=[ResumeView(slot=1, payload="one", html="<p/>"), ResumeView(slot=3, payload="three")],
            subscription_tier=1,
            max_allowed=3
        )
        assert listing.to_dict() == {
            "email": "a@x.com",
            "resumes": [
                {"slot": "resume1", "data": "one", "html": "<p/>"},
                {"slot": "resume3", "data": "three", "html": None},
            ],
            "subscription_tier": 1,
            "max_resumes_allowed": 3,
            "current_resume_count": 2
        }

    def test_dashboard_to_dict(self):
        view = DashboardView(ats_score=None, active_webpage_count=1, resume_count=1, subscription_tier=2,
                             total_resumes_parsed=4, total_webpages_created=4, max_allowed=10)
        data = view.to_dict()
        assert data["active_webpages"] == 1
        assert data["max_resumes_allowed"] == 10
        assert data["ats_score"] is None
