from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from dataclasses import replace
from datetime import date, datetime
from typing import Any, Callable, List, Optional, Tuple

from models import (
    DraftEntry,
    InternProfile,
    InternType,
    TimeEntry,
    apply_fields,
    current_time_str,
)

log = logging.getLogger(__name__)

ENTRIES_KEY = "centralTimeEntries"
PROFILE_KEY = "centralInternInfo"
DRAFT_KEY = "centralCurrentEntry"

PERSISTENCE_ERRORS = (sqlite3.Error, OSError)
DECODE_ERRORS = (ValueError, TypeError, KeyError, AttributeError)


class LocalStore:
    """String-keyed records of JSON text kept in a sqlite file.

    Reads and writes never raise: failures are logged, reads return None
    and writes report False so callers can keep their state in memory.
    """

    def __init__(self, path: str) -> None:
        self.path = path

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.path)

    def init_schema(self) -> None:
        try:
            conn = self._connect()
        except PERSISTENCE_ERRORS:
            log.exception("Could not open local storage at %s", self.path)
            return
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS local_storage (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )
            conn.commit()
        except PERSISTENCE_ERRORS:
            log.exception("Could not create local storage table")
        finally:
            conn.close()

    def read(self, key: str) -> Optional[str]:
        try:
            conn = self._connect()
        except PERSISTENCE_ERRORS:
            log.exception("Error loading saved data for %s", key)
            return None
        try:
            row = conn.execute("SELECT value FROM local_storage WHERE key = ?", (key,)).fetchone()
        except PERSISTENCE_ERRORS:
            log.exception("Error loading saved data for %s", key)
            return None
        finally:
            conn.close()
        return row[0] if row is not None else None

    def write(self, key: str, value: str) -> bool:
        try:
            conn = self._connect()
        except PERSISTENCE_ERRORS:
            log.exception("Error saving %s", key)
            return False
        try:
            conn.execute(
                "INSERT OR REPLACE INTO local_storage (key, value) VALUES (?, ?)",
                (key, value),
            )
            conn.commit()
        except PERSISTENCE_ERRORS:
            log.exception("Error saving %s", key)
            return False
        finally:
            conn.close()
        return True

    def load_json(self, key: str) -> Any:
        raw = self.read(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            log.warning("Discarding unreadable saved data for %s", key)
            return None

    def save_json(self, key: str, payload: Any) -> bool:
        return self.write(key, json.dumps(payload))


def new_entry_id() -> str:
    return uuid.uuid4().hex


class EntryStore:
    """Ordered collection of committed time entries (creation order)."""

    def __init__(self, storage: LocalStore, id_factory: Callable[[], str] = new_entry_id) -> None:
        self.storage = storage
        self.id_factory = id_factory
        self._entries: List[TimeEntry] = []

    def load(self) -> None:
        payload = self.storage.load_json(ENTRIES_KEY)
        if payload is None:
            self._entries = []
            return
        if not isinstance(payload, list):
            log.warning("Saved entries are not a list, starting empty")
            self._entries = []
            return
        entries = []
        for item in payload:
            try:
                entries.append(TimeEntry.from_dict(item))
            except DECODE_ERRORS:
                log.warning("Skipping invalid saved entry: %r", item)
        self._entries = entries

    def save(self) -> bool:
        return self.storage.save_json(ENTRIES_KEY, [entry.to_dict() for entry in self._entries])

    def all(self) -> List[TimeEntry]:
        return list(self._entries)

    def get(self, entry_id: str) -> Optional[TimeEntry]:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        return None

    def _next_id(self) -> str:
        existing = {entry.id for entry in self._entries}
        entry_id = self.id_factory()
        while entry_id in existing:
            entry_id = self.id_factory()
        return entry_id

    def add(self, draft: DraftEntry) -> Tuple[Optional[str], Optional[TimeEntry]]:
        error = draft.missing_fields()
        if error:
            return error, None
        entry = TimeEntry.from_draft(self._next_id(), draft)
        self._entries.append(entry)
        self.save()
        log.info("Added entry %s (%s, %.1f hours)", entry.id, entry.category.value, entry.total_hours)
        return None, entry

    def update(self, entry_id: str, draft: DraftEntry) -> Tuple[Optional[str], Optional[TimeEntry]]:
        error = draft.missing_fields()
        if error:
            return error, None
        for index, existing in enumerate(self._entries):
            if existing.id == entry_id:
                entry = TimeEntry.from_draft(entry_id, draft)
                self._entries[index] = entry
                self.save()
                log.info("Updated entry %s", entry_id)
                return None, entry
        return "Entry not found.", None

    def commit(
        self, draft: DraftEntry, editing_id: Optional[str] = None
    ) -> Tuple[Optional[str], Optional[TimeEntry]]:
        if editing_id:
            return self.update(editing_id, draft)
        return self.add(draft)

    def remove(self, entry_id: str) -> bool:
        remaining = [entry for entry in self._entries if entry.id != entry_id]
        if len(remaining) == len(self._entries):
            return False
        self._entries = remaining
        self.save()
        log.info("Deleted entry %s", entry_id)
        return True


class ProfileStore:
    def __init__(self, storage: LocalStore) -> None:
        self.storage = storage
        self.profile = InternProfile()

    def load(self) -> None:
        payload = self.storage.load_json(PROFILE_KEY)
        if payload is None:
            self.profile = InternProfile()
            return
        try:
            self.profile = InternProfile.from_dict(payload)
        except DECODE_ERRORS:
            log.warning("Discarding invalid saved profile")
            self.profile = InternProfile()

    def save(self) -> bool:
        return self.storage.save_json(PROFILE_KEY, self.profile.to_dict())

    def update(self, **fields: Any) -> Optional[str]:
        changes = {}
        for key in ("name", "email", "supervisor"):
            if key in fields and fields[key] is not None:
                changes[key] = str(fields[key]).strip()
        if fields.get("intern_type"):
            try:
                changes["intern_type"] = InternType(fields["intern_type"])
            except ValueError:
                return "Unknown intern type."
        self.profile = replace(self.profile, **changes)
        self.save()
        return None


class DraftStore:
    """The entry being composed, plus the id of the entry under edit."""

    def __init__(self, storage: LocalStore) -> None:
        self.storage = storage
        self.draft = DraftEntry()
        self.editing_id: Optional[str] = None
        self.timed_in = False

    def load(self, today: Optional[date] = None) -> None:
        payload = self.storage.load_json(DRAFT_KEY)
        if payload is None:
            self.draft, self.editing_id = DraftEntry(date=today or date.today()), None
            self.timed_in = False
            return
        try:
            self.draft = DraftEntry.from_dict(payload)
            editing_id = payload.get("editingId")
            self.editing_id = str(editing_id) if editing_id else None
            self.timed_in = bool(payload.get("timedIn"))
        except DECODE_ERRORS:
            log.warning("Discarding invalid saved draft")
            self.draft, self.editing_id = DraftEntry(date=today or date.today()), None
            self.timed_in = False

    def save(self) -> bool:
        payload = self.draft.to_dict()
        if self.editing_id:
            payload["editingId"] = self.editing_id
        if self.timed_in:
            payload["timedIn"] = True
        return self.storage.save_json(DRAFT_KEY, payload)

    @property
    def is_editing(self) -> bool:
        return self.editing_id is not None

    @property
    def status(self) -> str:
        if self.editing_id is None and self.draft.is_empty():
            return "idle"
        return "editing"

    @property
    def is_timed_in(self) -> bool:
        return self.timed_in

    def update(self, **fields: Any) -> Optional[str]:
        error, draft = apply_fields(self.draft, fields)
        if error:
            return error
        self.draft = draft
        self.save()
        return None

    def clock_in(self, now: Optional[datetime] = None) -> str:
        stamp = current_time_str(now)
        self.timed_in = True
        self.update(time_in=stamp)
        return stamp

    def clock_out(self, now: Optional[datetime] = None) -> str:
        stamp = current_time_str(now)
        self.timed_in = False
        self.update(time_out=stamp)
        return stamp

    def load_entry(self, entry: TimeEntry) -> None:
        self.draft = entry.to_draft()
        self.editing_id = entry.id
        self.timed_in = False
        self.save()

    def reset(self, today: Optional[date] = None) -> None:
        self.draft = DraftEntry(date=today or date.today())
        self.editing_id = None
        self.timed_in = False
        self.save()

    def forget(self, entry_id: str) -> None:
        if self.editing_id == entry_id:
            self.editing_id = None
            self.save()


class TimeLoggerState:
    """The three stores backing one running app instance."""

    def __init__(self, storage: LocalStore, id_factory: Callable[[], str] = new_entry_id) -> None:
        self.storage = storage
        self.entries = EntryStore(storage, id_factory)
        self.profile = ProfileStore(storage)
        self.draft = DraftStore(storage)

    def load(self, today: Optional[date] = None) -> "TimeLoggerState":
        self.storage.init_schema()
        self.entries.load()
        self.profile.load()
        self.draft.load(today)
        return self

    def submit_draft(self, today: Optional[date] = None) -> Tuple[Optional[str], Optional[TimeEntry]]:
        error, entry = self.entries.commit(self.draft.draft, self.draft.editing_id)
        if error is None:
            self.draft.reset(today)
        return error, entry

    def delete_entry(self, entry_id: str) -> bool:
        removed = self.entries.remove(entry_id)
        if removed:
            self.draft.forget(entry_id)
        return removed
