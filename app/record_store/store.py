"""
Record store adapters.

One document per user identity (email). Every save is a compare-and-swap on
the document version, so two writers that loaded the same version cannot both
win: the second one gets ``Conflict`` and must redo its read-modify-write.
"""

import copy
import fcntl
import hashlib
import json
import logging
import os
import tempfile
import time
from contextlib import contextmanager, nullcontext
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Iterator, List, Optional
from urllib.parse import quote, unquote

from app.exceptions import (
    Conflict,
    DuplicateIdentity,
    NotFound,
    StoreTimeout,
    StoreUnavailable,
)
from .models import StoredDocument, VERSION_FIELD

logger = logging.getLogger(__name__)


class RecordStore:
    """
    Base record store with versioned writes.

    Subclasses provide raw persistence via ``_read``, ``_write`` and
    ``_list_emails``, and may add a cross-process lock per record through
    ``_record_lock``; this class owns locking, timeouts and version checks.
    """

    def __init__(self, timeout_seconds: float = 5.0):
        """
        Initialize the store.

        Args:
            timeout_seconds: Maximum time a call may wait for the store lock
        """
        self.timeout_seconds = timeout_seconds
        self._lock = Lock()
        self._closed = False

    @contextmanager
    def _locked(self, email: Optional[str] = None):
        """Hold the store lock, and the record's lock when ``email`` is given."""
        if self._closed:
            raise StoreUnavailable("Record store is closed")
        deadline = time.monotonic() + self.timeout_seconds
        if not self._lock.acquire(timeout=self.timeout_seconds):
            raise self._timeout_error()
        try:
            with self._record_lock(email, deadline):
                yield
        finally:
            self._lock.release()

    def _timeout_error(self) -> StoreTimeout:
        return StoreTimeout(
            "Record store timed out",
            f"lock not acquired within {self.timeout_seconds}s"
        )

    # =====================
    # Public contract
    # =====================

    def find(self, email: str) -> Optional[StoredDocument]:
        """Exact-match lookup by email. Returns None if absent."""
        with self._locked(email):
            data = self._read(email)
        if data is None:
            return None
        return StoredDocument.from_dict(data)

    def create(self, email: str, fields: Dict[str, Any]) -> StoredDocument:
        """
        Insert a new document at version 1.

        Raises:
            DuplicateIdentity: If a document already exists for the email
        """
        document = StoredDocument(email=email, fields=copy.deepcopy(fields), version=1)
        with self._locked(email):
            if self._read(email) is not None:
                raise DuplicateIdentity(email)
            self._write(email, document.to_dict())
        logger.debug(f"Created record {email} at version 1")
        return document

    def save(self, document: StoredDocument) -> StoredDocument:
        """
        Persist a modified document if nobody else wrote it since it was loaded.

        Returns:
            The saved document with its new version

        Raises:
            NotFound: If the document no longer exists
            Conflict: If the stored version differs from ``document.version``
        """
        with self._locked(document.email):
            current = self._read(document.email)
            if current is None:
                raise NotFound(f"User not found: {document.email}")
            current_version = int(current.get(VERSION_FIELD, 0))
            if current_version != document.version:
                raise Conflict(document.email, document.version, current_version)
            saved = StoredDocument(
                email=document.email,
                fields=copy.deepcopy(document.fields),
                version=document.version + 1
            )
            self._write(document.email, saved.to_dict())
        logger.debug(f"Saved record {document.email} at version {saved.version}")
        return saved

    def iter_emails(self) -> Iterator[str]:
        """Iterate over every stored identity, sorted."""
        with self._locked():
            emails = sorted(self._list_emails())
        return iter(emails)

    def close(self) -> None:
        """Release the store. Later calls raise StoreUnavailable."""
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    # =====================
    # Backend hooks
    # =====================

    def _record_lock(self, email: Optional[str], deadline: float):
        """Lock shared with other handles on the same data. None needed in-process."""
        return nullcontext()

    def _read(self, email: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def _write(self, email: str, data: Dict[str, Any]) -> None:
        raise NotImplementedError

    def _list_emails(self) -> List[str]:
        raise NotImplementedError


class InMemoryRecordStore(RecordStore):
    """Process-local store, used for tests and ephemeral runs."""

    def __init__(self, timeout_seconds: float = 5.0):
        super().__init__(timeout_seconds)
        self._documents: Dict[str, Dict[str, Any]] = {}

    def _read(self, email: str) -> Optional[Dict[str, Any]]:
        data = self._documents.get(email)
        return copy.deepcopy(data) if data is not None else None

    def _write(self, email: str, data: Dict[str, Any]) -> None:
        self._documents[email] = copy.deepcopy(data)

    def _list_emails(self) -> List[str]:
        return list(self._documents.keys())

    def clear(self) -> None:
        """Drop every document."""
        with self._locked():
            self._documents.clear()


class JsonFileRecordStore(RecordStore):
    """One JSON file per user under ``data_dir``.

    Files are replaced atomically (temp file + rename) so a crash mid-write
    never leaves a half-written record. Each read-compare-write also holds an
    ``flock`` on the record's ``.lock`` file, so processes sharing
    ``data_dir`` (several server workers, the reconcile script) serialize
    their saves on the same record.
    """

    # Quoted names longer than this are replaced by a digest; filesystems cap names at 255 bytes
    MAX_NAME_BYTES = 200
    LOCK_POLL_SECONDS = 0.01

    def __init__(self, data_dir: Path, timeout_seconds: float = 5.0):
        super().__init__(timeout_seconds)
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _file_stem(self, email: str) -> str:
        stem = quote(email, safe='@._-+')
        if len(stem.encode("utf-8")) > self.MAX_NAME_BYTES:
            stem = "h-" + hashlib.sha256(email.encode("utf-8")).hexdigest()
        return stem

    def _user_file(self, email: str) -> Path:
        """Get the record file path for an email."""
        return self.data_dir / f"{self._file_stem(email)}.json"

    def _lock_file(self, email: str) -> Path:
        return self.data_dir / f"{self._file_stem(email)}.lock"

    @contextmanager
    def _record_lock(self, email: Optional[str], deadline: float):
        if email is None:
            yield
            return

        lock_path = self._lock_file(email)
        try:
            fd = os.open(lock_path, os.O_RDWR | os.O_CREAT, 0o644)
        except OSError as e:
            logger.error(f"Error opening lock file {lock_path}: {e}")
            raise StoreUnavailable("Failed to lock record", str(e)) from e

        try:
            while True:
                try:
                    fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except BlockingIOError:
                    if time.monotonic() >= deadline:
                        raise self._timeout_error()
                    time.sleep(self.LOCK_POLL_SECONDS)
            try:
                yield
            finally:
                fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)

    def _read(self, email: str) -> Optional[Dict[str, Any]]:
        user_file = self._user_file(email)
        try:
            with open(user_file, 'r', encoding='utf-8') as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading record {user_file}: {e}")
            raise StoreUnavailable("Failed to read record", str(e)) from e

    def _write(self, email: str, data: Dict[str, Any]) -> None:
        user_file = self._user_file(email)
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(dir=self.data_dir, prefix=".tmp-", suffix=".json")
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, user_file)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Error saving record {user_file}: {e}")
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise StoreUnavailable("Failed to write record", str(e)) from e

    def _list_emails(self) -> List[str]:
        emails = []
        try:
            for path in self.data_dir.glob("*.json"):
                if path.name.startswith(".tmp-"):
                    continue
                if path.stem.startswith("h-"):
                    # Digest-named files carry their email only inside
                    with open(path, 'r', encoding='utf-8') as f:
                        emails.append(json.load(f)["email"])
                else:
                    emails.append(unquote(path.stem))
        except (OSError, json.JSONDecodeError, KeyError) as e:
            raise StoreUnavailable("Failed to list records", str(e)) from e
        return emails
