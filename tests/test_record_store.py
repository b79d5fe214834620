"""
Tests for the record store adapters: versioned create/save, timeouts and
the JSON file layout.
"""

import json
import multiprocessing
import threading
import time

import pytest

from app.exceptions import (
    Conflict,
    DuplicateIdentity,
    NotFound,
    StoreTimeout,
    StoreUnavailable,
)
from app.record_store import (
    InMemoryRecordStore,
    JsonFileRecordStore,
    StoredDocument,
    VERSION_FIELD,
    create_record_store,
)
from config_manager import StoreConfig


@pytest.fixture(params=["memory", "json"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryRecordStore(timeout_seconds=0.2)
    return JsonFileRecordStore(tmp_path / "records", timeout_seconds=0.2)


class TestRecordStoreContract:
    """Behaviour shared by every backend."""

    def test_find_missing_returns_none(self, store):
        assert store.find("nobody@x.com") is None

    def test_create_starts_at_version_one(self, store):
        created = store.create("a@x.com", {"email": "a@x.com", "resume1": {"name": "A"}})
        assert created.version == 1

        found = store.find("a@x.com")
        assert found.version == 1
        assert found.fields["resume1"] == {"name": "A"}
        assert VERSION_FIELD not in found.fields

    def test_create_twice_raises_duplicate_identity(self, store):
        store.create("a@x.com", {"email": "a@x.com"})
        with pytest.raises(DuplicateIdentity):
            store.create("a@x.com", {"email": "a@x.com", "resume1": "other"})
        assert "resume1" not in store.find("a@x.com").fields

    def test_save_bumps_version(self, store):
        store.create("a@x.com", {"email": "a@x.com"})
        document = store.find("a@x.com")
        document.fields["ats_score"] = 80

        saved = store.save(document)

        assert saved.version == 2
        assert store.find("a@x.com").fields["ats_score"] == 80

    def test_stale_save_raises_conflict(self, store):
        store.create("a@x.com", {"email": "a@x.com"})
        first = store.find("a@x.com")
        second = store.find("a@x.com")

        first.fields["resume1"] = "first"
        store.save(first)

        second.fields["resume1"] = "second"
        with pytest.raises(Conflict) as exc_info:
            store.save(second)

        assert exc_info.value.expected_version == 1
        assert exc_info.value.actual_version == 2
        assert store.find("a@x.com").fields["resume1"] == "first"

    def test_save_missing_raises_not_found(self, store):
        with pytest.raises(NotFound):
            store.save(StoredDocument(email="ghost@x.com", fields={"email": "ghost@x.com"}, version=1))

    def test_found_document_is_a_copy(self, store):
        store.create("a@x.com", {"email": "a@x.com", "resume1": {"skills": ["py"]}})
        document = store.find("a@x.com")
        document.fields["resume1"]["skills"].append("go")

        assert store.find("a@x.com").fields["resume1"] == {"skills": ["py"]}

    def test_iter_emails_sorted(self, store):
        for email in ["c@x.com", "a@x.com", "b+tag@x.com"]:
            store.create(email, {"email": email})
        assert list(store.iter_emails()) == ["a@x.com", "b+tag@x.com", "c@x.com"]

    def test_closed_store_is_unavailable(self, store):
        store.close()
        assert store.closed
        with pytest.raises(StoreUnavailable):
            store.find("a@x.com")

    def test_lock_timeout_raises_store_timeout(self, store):
        """A call that cannot get the store within its timeout fails with 504."""
        store._lock.acquire()
        try:
            with pytest.raises(StoreTimeout) as exc_info:
                store.find("a@x.com")
            assert exc_info.value.status_code == 504
        finally:
            store._lock.release()

    def test_concurrent_saves_only_one_wins(self, store):
        """Writers that loaded the same version cannot both succeed."""
        store.timeout_seconds = 5.0
        store.create("a@x.com", {"email": "a@x.com", "counter": 0})
        loaded = [store.find("a@x.com") for _ in range(8)]
        results = []
        results_lock = threading.Lock()

        def writer(document):
            document.fields["counter"] += 1
            try:
                store.save(document)
                outcome = "saved"
            except Conflict:
                outcome = "conflict"
            with results_lock:
                results.append(outcome)

        threads = [threading.Thread(target=writer, args=(doc,)) for doc in loaded]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count("saved") == 1
        assert results.count("conflict") == 7
        assert store.find("a@x.com").version == 2


class TestJsonFileRecordStore:
    """JSON backend specifics."""

    def test_one_file_per_user(self, tmp_path):
        store = JsonFileRecordStore(tmp_path, timeout_seconds=1.0)
        store.create("a+b@x.com", {"email": "a+b@x.com", "resume1": "text"})

        files = [p.name for p in tmp_path.glob("*.json")]
        assert files == ["a+b@x.com.json"]

        data = json.loads((tmp_path / "a+b@x.com.json").read_text(encoding="utf-8"))
        assert data[VERSION_FIELD] == 1
        assert data["resume1"] == "text"

    def test_unsafe_email_characters_are_quoted(self, tmp_path):
        store = JsonFileRecordStore(tmp_path, timeout_seconds=1.0)
        store.create("../evil@x.com", {"email": "../evil@x.com"})

        assert list(tmp_path.parent.glob("evil@x.com.json")) == []
        assert list(store.iter_emails()) == ["../evil@x.com"]

    def test_persists_across_instances(self, tmp_path):
        JsonFileRecordStore(tmp_path).create("a@x.com", {"email": "a@x.com", "ats_score": 70})
        reopened = JsonFileRecordStore(tmp_path)
        assert reopened.find("a@x.com").fields["ats_score"] == 70

    def test_corrupt_file_raises_store_unavailable(self, tmp_path):
        store = JsonFileRecordStore(tmp_path)
        (tmp_path / "a@x.com.json").write_text("{broken", encoding="utf-8")
        with pytest.raises(StoreUnavailable):
            store.find("a@x.com")

    def test_no_temp_files_left_behind(self, tmp_path):
        store = JsonFileRecordStore(tmp_path)
        store.create("a@x.com", {"email": "a@x.com"})
        document = store.find("a@x.com")
        store.save(document)
        assert list(tmp_path.glob(".tmp-*")) == []

    def test_long_email_uses_digest_file_name(self, tmp_path):
        email = "ü" * 200 + "@example.com"
        store = JsonFileRecordStore(tmp_path)
        store.create(email, {"email": email, "resume1": "text"})

        names = [p.name for p in tmp_path.glob("*.json")]
        assert len(names) == 1
        assert names[0].startswith("h-")
        assert len(names[0].encode("utf-8")) < 255
        assert store.find(email).fields["resume1"] == "text"
        assert list(store.iter_emails()) == [email]


def _increment_counter(data_dir, email, rounds):
    """Read-modify-write loop used by the cross-process tests."""
    store = JsonFileRecordStore(data_dir, timeout_seconds=10.0)
    for _ in range(rounds):
        while True:
            document = store.find(email)
            document.fields["counter"] += 1
            try:
                store.save(document)
                break
            except Conflict:
                continue


def _hold_record_lock(data_dir, email, held, release):
    store = JsonFileRecordStore(data_dir, timeout_seconds=5.0)
    with store._locked(email):
        held.set()
        release.wait(5)


class SlowReadStore(JsonFileRecordStore):
    """Widens the gap between the version check and the write."""

    def _read(self, email):
        data = super()._read(email)
        time.sleep(0.02)
        return data


class TestSharedJsonDirectory:
    """Several store handles, or processes, on one data directory."""

    def test_record_lock_blocks_other_handle(self, tmp_path):
        first = JsonFileRecordStore(tmp_path, timeout_seconds=1.0)
        second = JsonFileRecordStore(tmp_path, timeout_seconds=0.1)
        first.create("a@x.com", {"email": "a@x.com"})

        with first._locked("a@x.com"):
            with pytest.raises(StoreTimeout):
                second.find("a@x.com")
            # Other records stay available
            assert second.find("b@x.com") is None

        assert second.find("a@x.com").version == 1

    def test_stale_save_from_other_handle_conflicts(self, tmp_path):
        first = JsonFileRecordStore(tmp_path)
        second = JsonFileRecordStore(tmp_path)
        first.create("a@x.com", {"email": "a@x.com"})
        stale = second.find("a@x.com")

        document = first.find("a@x.com")
        document.fields["resume1"] = "first"
        first.save(document)

        stale.fields["resume1"] = "second"
        with pytest.raises(Conflict):
            second.save(stale)
        assert second.find("a@x.com").fields["resume1"] == "first"

    def test_threads_with_own_handles_lose_no_updates(self, tmp_path):
        JsonFileRecordStore(tmp_path).create("a@x.com", {"email": "a@x.com", "counter": 0})

        def writer():
            store = SlowReadStore(tmp_path, timeout_seconds=10.0)
            for _ in range(5):
                while True:
                    document = store.find("a@x.com")
                    document.fields["counter"] += 1
                    try:
                        store.save(document)
                        break
                    except Conflict:
                        continue

        threads = [threading.Thread(target=writer) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        document = JsonFileRecordStore(tmp_path).find("a@x.com")
        assert document.fields["counter"] == 20
        assert document.version == 21

    def test_processes_lose_no_updates(self, tmp_path):
        JsonFileRecordStore(tmp_path).create("a@x.com", {"email": "a@x.com", "counter": 0})

        ctx = multiprocessing.get_context("fork")
        procs = [ctx.Process(target=_increment_counter, args=(tmp_path, "a@x.com", 25)) for _ in range(3)]
        for p in procs:
            p.start()
        for p in procs:
            p.join(30)

        assert [p.exitcode for p in procs] == [0, 0, 0]
        assert JsonFileRecordStore(tmp_path).find("a@x.com").fields["counter"] == 75

    def test_lock_held_by_other_process_times_out(self, tmp_path):
        ctx = multiprocessing.get_context("fork")
        held, release = ctx.Event(), ctx.Event()
        proc = ctx.Process(target=_hold_record_lock, args=(tmp_path, "a@x.com", held, release))
        proc.start()
        try:
            assert held.wait(5)
            with pytest.raises(StoreTimeout):
                JsonFileRecordStore(tmp_path, timeout_seconds=0.1).find("a@x.com")
        finally:
            release.set()
            proc.join(5)

        assert JsonFileRecordStore(tmp_path, timeout_seconds=0.1).find("a@x.com") is None


class TestCreateRecordStore:
    """Backend selection from configuration."""

    def _config(self, backend, data_dir="records"):
        return StoreConfig(backend=backend, data_dir=data_dir, timeout_seconds=2.0, max_write_retries=3)

    def test_memory_backend(self):
        store = create_record_store(self._config("memory"))
        assert isinstance(store, InMemoryRecordStore)
        assert store.timeout_seconds == 2.0

    def test_json_backend_resolves_relative_dir(self, tmp_path):
        store = create_record_store(self._config("json"), base_dir=tmp_path)
        assert isinstance(store, JsonFileRecordStore)
        assert store.data_dir == tmp_path / "records"
        assert store.data_dir.is_dir()

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            create_record_store(self._config("mongo"))
