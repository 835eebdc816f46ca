"""Encrypted persistence of PersonCard aggregates over a RecordStore backend.

Sensitive fields are encrypted one by one (each with its own IV) on write and
decrypted on read; ids, photo URIs, icons, flags and timestamps stay in
plaintext for indexing and sorting. Notes are never joined into a person on
read; load them with ``get_notes``.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import datetime
from typing import Any, Literal

from rememberme.application.ports import RecordStore, Row, StoreReader, StoreTransaction
from rememberme.application.schema import (
    NOTES,
    PARENT_KEY,
    PERSON_CARDS,
    QUICK_FACTS,
    SCHEMA,
    SCHEMA_VERSION,
    TAGS,
    tag_row_id,
)
from rememberme.domain import (
    AlreadyInitialized,
    DuplicateId,
    LinkedContacts,
    Note,
    NotFound,
    NotInitialized,
    PersonCard,
    PrivacySettings,
    QuickFact,
)
from rememberme.domain.entities import format_datetime, parse_datetime, utc_now
from rememberme.security import FieldCipher

logger = logging.getLogger(__name__)

SortOption = Literal["recent", "alphabetical", "starred"]

# Collections holding rows owned by a person, deleted before the person row.
_CHILD_COLLECTIONS = (QUICK_FACTS, NOTES, TAGS)


class PersonStore:
    """Owns the data-encryption key and the backend handle for one session.

    Every operation raises NotInitialized until ``init(key)`` succeeds.
    """

    def __init__(
        self,
        backend: RecordStore,
        *,
        normalize_phone: Callable[[str], str | None] | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._backend = backend
        self._normalize_phone = normalize_phone
        self._clock = clock
        self._cipher: FieldCipher | None = None

    @property
    def is_initialized(self) -> bool:
        return self._cipher is not None

    def init(self, key: str) -> "PersonStore":
        """Bind the key and open the backend. Returns the ready store.

        Calling again with the same key is a no-op. A different key is
        rejected until ``close()`` is called.
        """
        if self._cipher is not None:
            if self._cipher.matches(key):
                return self
            raise AlreadyInitialized("Store is already initialized with another key; close() it first.")
        cipher = FieldCipher(key)
        self._backend.open(SCHEMA, SCHEMA_VERSION)
        self._cipher = cipher
        logger.info("Person store initialized (schema v%d)", SCHEMA_VERSION)
        return self

    def close(self) -> None:
        if self._cipher is None:
            return
        self._backend.close()
        self._cipher = None
        logger.info("Person store closed")

    def _require_cipher(self) -> FieldCipher:
        if self._cipher is None:
            raise NotInitialized()
        return self._cipher

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    def add_person(self, person: PersonCard) -> None:
        """Store a new person with its quick facts, tags and notes. DuplicateId if the id exists."""
        cipher = self._require_cipher()
        with self._backend.transaction() as tx:
            if tx.get(PERSON_CARDS, person.id) is not None:
                raise DuplicateId(person.id)
            tx.put(PERSON_CARDS, self._encode_person(cipher, person))
            self._put_facts_and_tags(tx, cipher, person)
            for note in person.notes:
                if tx.get(NOTES, note.id) is not None:
                    raise DuplicateId(note.id, kind="Note")
                self._put_note(tx, cipher, person.id, note)
        logger.debug("Added person %s", person.id)

    def update_person(self, person: PersonCard) -> PersonCard:
        """Replace scalars, quick facts and tags of an existing person. Notes are kept.

        ``created_at`` is kept from storage and ``updated_at`` is set to now.
        Returns the stored aggregate (without notes).
        """
        cipher = self._require_cipher()
        with self._backend.transaction() as tx:
            existing = tx.get(PERSON_CARDS, person.id)
            if existing is None:
                raise NotFound(person.id)
            created_at = parse_datetime(existing["created_at"])
            stored = replace(
                person,
                created_at=created_at,
                updated_at=max(self._clock(), created_at),
                notes=(),
            )
            tx.put(PERSON_CARDS, self._encode_person(cipher, stored))
            tx.delete_where(QUICK_FACTS, PARENT_KEY, person.id)
            tx.delete_where(TAGS, PARENT_KEY, person.id)
            self._put_facts_and_tags(tx, cipher, stored)
        logger.debug("Updated person %s", person.id)
        return stored

    def set_starred(self, person_id: str, starred: bool) -> PersonCard:
        """Flip the starred flag without touching encrypted fields."""
        self._require_cipher()
        with self._backend.transaction() as tx:
            row = tx.get(PERSON_CARDS, person_id)
            if row is None:
                raise NotFound(person_id)
            created_at = parse_datetime(row["created_at"])
            row = dict(row)
            row["starred"] = 1 if starred else 0
            row["updated_at"] = format_datetime(max(self._clock(), created_at))
            tx.put(PERSON_CARDS, row)
        return self.get_person(person_id)

    def delete_person(self, person_id: str) -> None:
        """Remove the person and everything it owns. Unknown ids are ignored."""
        self._require_cipher()
        with self._backend.transaction() as tx:
            for collection in _CHILD_COLLECTIONS:
                tx.delete_where(collection, PARENT_KEY, person_id)
            tx.delete(PERSON_CARDS, person_id)
        logger.debug("Deleted person %s", person_id)

    def add_note(self, person_id: str, note: Note) -> None:
        """Append a note. NotFound if the person does not exist."""
        cipher = self._require_cipher()
        with self._backend.transaction() as tx:
            if tx.get(PERSON_CARDS, person_id) is None:
                raise NotFound(person_id)
            if tx.get(NOTES, note.id) is not None:
                raise DuplicateId(note.id, kind="Note")
            self._put_note(tx, cipher, person_id, note)
        logger.debug("Added note %s to person %s", note.id, person_id)

    def clear_all_data(self) -> None:
        """Delete every person, quick fact, note and tag."""
        self._require_cipher()
        with self._backend.transaction() as tx:
            for collection in (*_CHILD_COLLECTIONS, PERSON_CARDS):
                tx.clear(collection)
        logger.info("Cleared all person data")

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def get_person(self, person_id: str) -> PersonCard | None:
        """Return the person with quick facts and tags, or None. Notes are not loaded."""
        cipher = self._require_cipher()
        with self._backend.read() as reader:
            row = reader.get(PERSON_CARDS, person_id)
            if row is None:
                return None
            return self._load_person(reader, cipher, row)

    def get_all_people(self, limit: int | None = None) -> list[PersonCard]:
        """All people, most recently updated first."""
        if limit is not None and limit < 0:
            raise ValueError("limit must be non-negative")
        return self._list(limit=limit)

    def get_starred_people(self) -> list[PersonCard]:
        return self._list(where={"starred": 1})

    def list_people(self, sort: SortOption = "recent") -> list[PersonCard]:
        """All people in one of the list screen's sort orders."""
        people = self._list()
        if sort == "recent":
            return people
        if sort == "alphabetical":
            return sorted(people, key=lambda p: (p.display_name.casefold(), p.id))
        if sort == "starred":
            return sorted(people, key=lambda p: not p.starred)
        raise ValueError(f"Unknown sort option {sort!r}")

    def search_people(self, query: str) -> list[PersonCard]:
        """Case-insensitive substring match over names, title, company, tags and quick-fact values.

        Fields are encrypted at rest, so every person is decrypted and
        filtered in memory. Results use the listing order.
        """
        needle = (query or "").strip().casefold()
        if not needle:
            return []
        return [p for p in self._list() if _matches(p, needle)]

    def find_by_phone(self, phone: str) -> list[PersonCard]:
        """People whose linked phone is the same number as *phone*, ignoring formatting."""
        target = self._phone_key(phone)
        if target is None:
            return []
        return [
            p
            for p in self._list()
            if p.linked_contacts.phone and self._phone_key(p.linked_contacts.phone) == target
        ]

    def get_notes(self, person_id: str) -> list[Note]:
        """Notes for the person, newest first."""
        cipher = self._require_cipher()
        with self._backend.read() as reader:
            rows = reader.scan(
                NOTES,
                where={PARENT_KEY: person_id},
                order_by="date",
                descending=True,
            )
        return [self._decode_note(cipher, row) for row in rows]

    def count_people(self) -> int:
        self._require_cipher()
        with self._backend.read() as reader:
            return len(reader.scan(PERSON_CARDS))

    def _list(
        self,
        *,
        where: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> list[PersonCard]:
        cipher = self._require_cipher()
        with self._backend.read() as reader:
            rows = reader.scan(
                PERSON_CARDS,
                where=where,
                order_by="updated_at",
                descending=True,
                limit=limit,
            )
            return [self._load_person(reader, cipher, row) for row in rows]

    def _phone_key(self, phone: str) -> str | None:
        raw = (phone or "").strip()
        if not raw:
            return None
        if self._normalize_phone is None:
            return raw
        return self._normalize_phone(raw)

    # ------------------------------------------------------------------ #
    # Row encoding
    # ------------------------------------------------------------------ #

    @staticmethod
    def _encode_person(cipher: FieldCipher, person: PersonCard) -> Row:
        return {
            "id": person.id,
            "full_name": cipher.encrypt_value(person.full_name),
            "preferred_name": cipher.encrypt_optional(person.preferred_name),
            "title": cipher.encrypt_optional(person.title),
            "company": cipher.encrypt_optional(person.company),
            "photo_uri": person.photo_uri,
            "one_line_context": cipher.encrypt_optional(person.one_line_context),
            "last_met": format_datetime(person.last_met) if person.last_met else None,
            "linked_contacts": cipher.encrypt_value(person.linked_contacts.to_dict()),
            "privacy": cipher.encrypt_value(person.privacy.to_dict()),
            "starred": 1 if person.starred else 0,
            "created_at": format_datetime(person.created_at),
            "updated_at": format_datetime(person.updated_at),
        }

    @staticmethod
    def _put_facts_and_tags(tx: StoreTransaction, cipher: FieldCipher, person: PersonCard) -> None:
        for position, fact in enumerate(person.quick_facts):
            existing = tx.get(QUICK_FACTS, fact.id)
            if existing is not None and existing[PARENT_KEY] != person.id:
                raise DuplicateId(fact.id, kind="QuickFact")
            tx.put(
                QUICK_FACTS,
                {
                    "id": fact.id,
                    PARENT_KEY: person.id,
                    "label": cipher.encrypt_value(fact.label),
                    "value": cipher.encrypt_value(fact.value),
                    "icon": fact.icon,
                    "position": position,
                },
            )
        for tag in person.tags:
            row_id = tag_row_id(person.id, tag)
            # Hyphenated ids can collide, e.g. ("p", "q-r") and ("p-q", "r").
            existing = tx.get(TAGS, row_id)
            if existing is not None and existing[PARENT_KEY] != person.id:
                raise DuplicateId(row_id, kind="Tag")
            tx.put(
                TAGS,
                {
                    "id": row_id,
                    PARENT_KEY: person.id,
                    "tag": cipher.encrypt_value(tag),
                },
            )

    @staticmethod
    def _put_note(tx: StoreTransaction, cipher: FieldCipher, person_id: str, note: Note) -> None:
        tx.put(
            NOTES,
            {
                "id": note.id,
                PARENT_KEY: person_id,
                "date": format_datetime(note.date),
                "short_note": cipher.encrypt_value(note.short_note),
                "meeting_context": cipher.encrypt_optional(note.meeting_context),
            },
        )

    @staticmethod
    def _decode_note(cipher: FieldCipher, row: Row) -> Note:
        return Note(
            id=row["id"],
            date=parse_datetime(row["date"]),
            short_note=cipher.decrypt_value(row["short_note"]),
            meeting_context=cipher.decrypt_optional(row.get("meeting_context")),
        )

    @staticmethod
    def _load_person(reader: StoreReader, cipher: FieldCipher, row: Row) -> PersonCard:
        person_id = row["id"]
        fact_rows = reader.scan(QUICK_FACTS, where={PARENT_KEY: person_id}, order_by="position")
        tag_rows = reader.scan(TAGS, where={PARENT_KEY: person_id})
        last_met = row.get("last_met")
        return PersonCard(
            id=person_id,
            full_name=cipher.decrypt_value(row["full_name"]),
            preferred_name=cipher.decrypt_optional(row.get("preferred_name")),
            title=cipher.decrypt_optional(row.get("title")),
            company=cipher.decrypt_optional(row.get("company")),
            photo_uri=row.get("photo_uri"),
            one_line_context=cipher.decrypt_optional(row.get("one_line_context")),
            last_met=parse_datetime(last_met) if last_met else None,
            linked_contacts=LinkedContacts.from_dict(cipher.decrypt_optional(row.get("linked_contacts"))),
            privacy=PrivacySettings.from_dict(cipher.decrypt_optional(row.get("privacy"))),
            starred=bool(row.get("starred")),
            created_at=parse_datetime(row["created_at"]),
            updated_at=parse_datetime(row["updated_at"]),
            quick_facts=tuple(
                QuickFact(
                    id=fact["id"],
                    label=cipher.decrypt_value(fact["label"]),
                    value=cipher.decrypt_value(fact["value"]),
                    icon=fact.get("icon"),
                )
                for fact in fact_rows
            ),
            tags=tuple(cipher.decrypt_value(tag["tag"]) for tag in tag_rows),
        )


def _matches(person: PersonCard, needle: str) -> bool:
    haystack: Iterable[str | None] = (
        person.full_name,
        person.preferred_name,
        person.title,
        person.company,
        *person.tags,
        *(fact.value for fact in person.quick_facts),
    )
    return any(text and needle in text.casefold() for text in haystack)
