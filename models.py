from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

TIME_FORMATS = ("%H:%M", "%H:%M:%S")


class Category(str, Enum):
    MENTORSHIP = "mentorship"
    SERVICE = "service"
    SUPPORT = "support"
    COURSEWORK = "coursework"

    @property
    def label(self) -> str:
        return CATEGORY_LABELS[self]


CATEGORY_LABELS = {
    Category.MENTORSHIP: "Mentorship Hours",
    Category.SERVICE: "Service Volunteer Hours",
    Category.SUPPORT: "Support Ministry Hours",
    Category.COURSEWORK: "Canvas Coursework",
}


class InternType(str, Enum):
    FIRST_SEMESTER = "first-semester"
    RETURNING = "returning"

    @property
    def label(self) -> str:
        return "First Semester" if self is InternType.FIRST_SEMESTER else "Returning"


def parse_time_str(value: str) -> time:
    for fmt in TIME_FORMATS:
        try:
            return datetime.strptime(value, fmt).time()
        except ValueError:
            continue
    raise ValueError(f"Invalid time of day: {value!r}")


def current_time_str(now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return now.strftime("%H:%M")


def compute_hours(time_in: str, time_out: str) -> float:
    """Hours between two same-day times, rounded to one decimal.

    A time out at or before the time in yields 0; there is no wraparound
    to the next day.
    """
    if not time_in or not time_out:
        return 0.0
    start = datetime.combine(date.min, parse_time_str(time_in))
    end = datetime.combine(date.min, parse_time_str(time_out))
    seconds = int((end - start).total_seconds())
    if seconds <= 0:
        return 0.0
    hours = (Decimal(seconds) / Decimal(3600)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    return float(hours)


def _parse_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    return datetime.strptime(str(value), "%Y-%m-%d").date()


def _text(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _time_text(payload: Mapping[str, Any], key: str) -> str:
    value = _text(payload, key)
    if value:
        parse_time_str(value)
    return value


@dataclass
class DraftEntry:
    date: date = field(default_factory=date.today)
    category: Category = Category.MENTORSHIP
    activity: str = ""
    time_in: str = ""
    time_out: str = ""
    total_hours: float = 0.0
    notes: str = ""

    def is_empty(self) -> bool:
        return not (self.activity or self.time_in or self.time_out or self.notes)

    def missing_fields(self) -> Optional[str]:
        if not self.time_in or not self.time_out or not self.activity.strip():
            return "Please fill in all required fields (Time In, Time Out, and Activity)"
        return None

    def with_hours(self) -> "DraftEntry":
        return replace(self, total_hours=compute_hours(self.time_in, self.time_out))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "category": self.category.value,
            "activity": self.activity,
            "timeIn": self.time_in,
            "timeOut": self.time_out,
            "totalHours": self.total_hours,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "DraftEntry":
        return cls(
            date=_parse_date(payload["date"]),
            category=Category(payload.get("category", Category.MENTORSHIP.value)),
            activity=_text(payload, "activity"),
            time_in=_time_text(payload, "timeIn"),
            time_out=_time_text(payload, "timeOut"),
            total_hours=float(payload.get("totalHours") or 0),
            notes=_text(payload, "notes"),
        )


@dataclass(frozen=True)
class TimeEntry:
    id: str
    date: date
    category: Category
    activity: str
    time_in: str
    time_out: str
    total_hours: float
    notes: str = ""

    @classmethod
    def from_draft(cls, entry_id: str, draft: DraftEntry) -> "TimeEntry":
        return cls(
            id=entry_id,
            date=draft.date,
            category=draft.category,
            activity=draft.activity.strip(),
            time_in=draft.time_in,
            time_out=draft.time_out,
            total_hours=compute_hours(draft.time_in, draft.time_out),
            notes=draft.notes,
        )

    def to_draft(self) -> DraftEntry:
        return DraftEntry(
            date=self.date,
            category=self.category,
            activity=self.activity,
            time_in=self.time_in,
            time_out=self.time_out,
            total_hours=self.total_hours,
            notes=self.notes,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload = {"id": self.id}
        payload.update(self.to_draft().to_dict())
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "TimeEntry":
        draft = DraftEntry.from_dict(payload)
        return cls(
            id=str(payload["id"]),
            date=draft.date,
            category=draft.category,
            activity=draft.activity,
            time_in=draft.time_in,
            time_out=draft.time_out,
            total_hours=draft.total_hours,
            notes=draft.notes,
        )


@dataclass
class InternProfile:
    name: str = ""
    email: str = ""
    supervisor: str = ""
    intern_type: InternType = InternType.FIRST_SEMESTER

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "email": self.email,
            "supervisor": self.supervisor,
            "internType": self.intern_type.value,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "InternProfile":
        return cls(
            name=_text(payload, "name"),
            email=_text(payload, "email"),
            supervisor=_text(payload, "supervisor"),
            intern_type=InternType(payload.get("internType", InternType.FIRST_SEMESTER.value)),
        )


def apply_fields(draft: DraftEntry, fields: Mapping[str, Any]) -> Tuple[Optional[str], DraftEntry]:
    """Overwrite draft fields from form or JSON input.

    Blank date/category values are ignored, blank times clear the time.
    Hours are re-derived whenever either time is touched.
    """
    changes: Dict[str, Any] = {}
    try:
        if fields.get("date"):
            changes["date"] = _parse_date(fields["date"])
        if fields.get("category"):
            changes["category"] = Category(fields["category"])
        for key in ("time_in", "time_out"):
            if fields.get(key) is not None:
                value = str(fields[key]).strip()
                if value:
                    parse_time_str(value)
                changes[key] = value
    except ValueError:
        return "Invalid payload.", draft
    for key in ("activity", "notes"):
        if fields.get(key) is not None:
            changes[key] = str(fields[key])
    updated = replace(draft, **changes)
    if "time_in" in changes or "time_out" in changes:
        updated = updated.with_hours()
    return None, updated
