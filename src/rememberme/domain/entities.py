"""Domain entities: PersonCard and its QuickFacts, Notes, Tags, and contact/privacy payloads."""

import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Return *value* as an aware UTC datetime. Naive values are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def _optional_text(value: str | None) -> str | None:
    if value is None:
        return None
    return value if value.strip() else None


def normalize_tag(text: str) -> str:
    return (text or "").strip().lower()


def normalize_tags(tags: Iterable[str]) -> tuple[str, ...]:
    """Lowercase, strip and de-duplicate tags. Returned sorted, since tags form a set."""
    if isinstance(tags, str):
        tags = (tags,)
    return tuple(sorted({tag for tag in map(normalize_tag, tags) if tag}))


@dataclass(frozen=True)
class LinkedContacts:
    """Ways to reach a person. Every sub-field is optional."""

    phone: str | None = None
    email: str | None = None
    linkedin_url: str | None = None

    def __post_init__(self):
        object.__setattr__(self, "phone", _optional_text(self.phone))
        object.__setattr__(self, "email", _optional_text(self.email))
        object.__setattr__(self, "linkedin_url", _optional_text(self.linkedin_url))

    def to_dict(self) -> dict[str, Any]:
        return {
            key: value
            for key, value in (
                ("phone", self.phone),
                ("email", self.email),
                ("linkedin_url", self.linkedin_url),
            )
            if value is not None
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "LinkedContacts":
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ValueError("LinkedContacts payload must be a mapping.")
        return cls(
            phone=data.get("phone"),
            email=data.get("email"),
            linkedin_url=data.get("linkedin_url"),
        )


@dataclass(frozen=True)
class PrivacySettings:
    """Who a card is shared with and whether the person consented to being recorded."""

    shared_with: tuple[str, ...] = ()
    consent_given: bool = False
    consent_date: datetime | None = None

    def __post_init__(self):
        object.__setattr__(self, "shared_with", tuple(dict.fromkeys(self.shared_with)))
        if self.consent_date is not None:
            object.__setattr__(self, "consent_date", as_utc(self.consent_date))

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "shared_with": list(self.shared_with),
            "consent_given": self.consent_given,
        }
        if self.consent_date is not None:
            data["consent_date"] = self.consent_date.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "PrivacySettings":
        """Rebuild from a decoded payload. ``consent_given`` is required; the rest may be absent."""
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ValueError("PrivacySettings payload must be a mapping.")
        if "consent_given" not in data:
            raise ValueError("PrivacySettings payload is missing 'consent_given'.")
        consent_date = data.get("consent_date")
        return cls(
            shared_with=tuple(data.get("shared_with") or ()),
            consent_given=bool(data["consent_given"]),
            consent_date=parse_datetime(consent_date) if consent_date else None,
        )


@dataclass(frozen=True)
class QuickFact:
    """A short labeled memory aid, e.g. ("Kids", "Maya and Leo")."""

    id: str = field(default_factory=_new_id)
    label: str = field(default="")
    value: str = field(default="")
    icon: str | None = None

    def __post_init__(self):
        if not self.label or not self.label.strip():
            raise ValueError("QuickFact label must be non-empty.")


@dataclass(frozen=True)
class Note:
    """A dated note about a meeting or conversation."""

    id: str = field(default_factory=_new_id)
    date: datetime = field(default_factory=utc_now)
    short_note: str = field(default="")
    meeting_context: str | None = None

    def __post_init__(self):
        if not self.short_note or not self.short_note.strip():
            raise ValueError("Note short_note must be non-empty.")
        object.__setattr__(self, "date", as_utc(self.date))


@dataclass(frozen=True)
class PersonCard:
    """
    The aggregate record about one contact.
    Owns its quick facts (ordered), tags (lowercase, unique) and notes.
    """

    id: str = field(default_factory=_new_id)
    full_name: str = field(default="")
    preferred_name: str | None = None
    title: str | None = None
    company: str | None = None
    photo_uri: str | None = None
    one_line_context: str | None = None
    last_met: datetime | None = None
    linked_contacts: LinkedContacts = field(default_factory=LinkedContacts)
    privacy: PrivacySettings = field(default_factory=PrivacySettings)
    starred: bool = False
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime | None = None
    quick_facts: tuple[QuickFact, ...] = ()
    tags: tuple[str, ...] = ()
    notes: tuple[Note, ...] = ()

    def __post_init__(self):
        if not self.full_name or not self.full_name.strip():
            raise ValueError("PersonCard full_name must be non-empty.")
        for name in ("preferred_name", "title", "company", "photo_uri", "one_line_context"):
            object.__setattr__(self, name, _optional_text(getattr(self, name)))
        created_at = as_utc(self.created_at)
        updated_at = as_utc(self.updated_at) if self.updated_at is not None else created_at
        if updated_at < created_at:
            raise ValueError("PersonCard updated_at must not be earlier than created_at.")
        object.__setattr__(self, "created_at", created_at)
        object.__setattr__(self, "updated_at", updated_at)
        if self.last_met is not None:
            object.__setattr__(self, "last_met", as_utc(self.last_met))
        object.__setattr__(self, "quick_facts", tuple(self.quick_facts))
        object.__setattr__(self, "tags", normalize_tags(self.tags))
        object.__setattr__(self, "notes", tuple(self.notes))

    @property
    def display_name(self) -> str:
        return self.preferred_name or self.full_name


def parse_datetime(value: str) -> datetime:
    return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))


def format_datetime(value: datetime) -> str:
    """Fixed-width ISO-8601 in UTC, so stored strings sort chronologically."""
    return as_utc(value).isoformat(timespec="microseconds")
