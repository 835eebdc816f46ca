"""Storage layout shared by every RecordStore backend.

Four collections, each keyed by an opaque string ``id``. Child collections
carry a plaintext ``person_id`` foreign key and are indexed on it; person
cards are indexed on ``starred`` and ``updated_at`` for sorted listing.
"""

from collections.abc import Iterable
from dataclasses import dataclass

SCHEMA_VERSION = 1

PERSON_CARDS = "person_cards"
QUICK_FACTS = "quick_facts"
NOTES = "notes"
TAGS = "tags"

PARENT_KEY = "person_id"


@dataclass(frozen=True)
class Collection:
    name: str
    label: str  # node label for graph backends
    columns: tuple[str, ...]
    indexes: tuple[str, ...] = ()
    integer_columns: tuple[str, ...] = ()
    required_columns: tuple[str, ...] = ()
    parent: str | None = None

    def check_columns(self, columns: Iterable[str]) -> None:
        unknown = set(columns) - set(self.columns)
        if unknown:
            raise ValueError(f"Unknown column(s) for {self.name}: {sorted(unknown)}")

    def check_indexed(self, columns: Iterable[str]) -> None:
        """Scans may only filter or sort on the id or an indexed column."""
        for column in columns:
            if column != "id" and column not in self.indexes:
                raise ValueError(f"Column {column!r} of {self.name} is not indexed.")


SCHEMA: tuple[Collection, ...] = (
    Collection(
        name=PERSON_CARDS,
        label="PersonCard",
        columns=(
            "id",
            "full_name",
            "preferred_name",
            "title",
            "company",
            "photo_uri",
            "one_line_context",
            "last_met",
            "linked_contacts",
            "privacy",
            "starred",
            "created_at",
            "updated_at",
        ),
        indexes=("starred", "updated_at"),
        integer_columns=("starred",),
        required_columns=("full_name", "created_at", "updated_at"),
    ),
    Collection(
        name=QUICK_FACTS,
        label="QuickFact",
        columns=("id", PARENT_KEY, "label", "value", "icon", "position"),
        indexes=(PARENT_KEY, "position"),
        integer_columns=("position",),
        parent=PERSON_CARDS,
    ),
    Collection(
        name=NOTES,
        label="Note",
        columns=("id", PARENT_KEY, "date", "short_note", "meeting_context"),
        indexes=(PARENT_KEY, "date"),
        required_columns=("date", "short_note"),
        parent=PERSON_CARDS,
    ),
    Collection(
        name=TAGS,
        label="Tag",
        columns=("id", PARENT_KEY, "tag"),
        indexes=(PARENT_KEY,),
        parent=PERSON_CARDS,
    ),
)

COLLECTIONS: dict[str, Collection] = {c.name: c for c in SCHEMA}


def get_collection(name: str) -> Collection:
    try:
        return COLLECTIONS[name]
    except KeyError:
        raise ValueError(f"Unknown collection {name!r}") from None


def tag_row_id(person_id: str, tag: str) -> str:
    return f"{person_id}-{tag}"
