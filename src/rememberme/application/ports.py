"""Application ports (interfaces). Implemented by infrastructure adapters."""

from collections.abc import Iterable, Mapping
from contextlib import AbstractContextManager
from typing import Any, Protocol

from rememberme.application.schema import Collection

Row = dict[str, Any]


class StoreReader(Protocol):
    """Read access to one consistent view of the store."""

    def get(self, collection: str, row_id: str) -> Row | None:
        """Return the row with the given id, or None."""
        ...

    def scan(
        self,
        collection: str,
        *,
        where: Mapping[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Row]:
        """Return rows matching ``where`` (equality on indexed columns).

        Rows are ordered by ``order_by`` with ties broken by ascending id.
        """
        ...


class StoreTransaction(StoreReader, Protocol):
    """Read-write access. Nothing is visible to readers until commit."""

    def put(self, collection: str, row: Row) -> None:
        """Insert or replace the row with ``row["id"]``."""
        ...

    def delete(self, collection: str, row_id: str) -> None:
        """Delete the row if present."""
        ...

    def delete_where(self, collection: str, column: str, value: Any) -> None:
        """Delete every row whose indexed ``column`` equals ``value``."""
        ...

    def clear(self, collection: str) -> None:
        """Delete every row of the collection."""
        ...


class RecordStore(Protocol):
    """Keyed collections with secondary-index scans and atomic transactions."""

    def open(self, schema: Iterable[Collection], version: int) -> None:
        """Create missing collections. Raise SchemaIncompatible on a mismatched store."""
        ...

    def read(self) -> AbstractContextManager[StoreReader]:
        """Consistent read view; never observes a transaction mid-flight."""
        ...

    def transaction(self) -> AbstractContextManager[StoreTransaction]:
        """Commit on normal exit, roll back if the block raises."""
        ...

    def close(self) -> None:
        ...


class KeyValueStore(Protocol):
    """Small persistent string store for auth material."""

    def get(self, key: str) -> str | None:
        ...

    def set_many(self, items: Mapping[str, str]) -> None:
        ...

    def delete_many(self, keys: Iterable[str]) -> None:
        ...


class BiometricAuthenticator(Protocol):
    """Platform biometric prompt. Treated as a boolean gate."""

    def has_hardware(self) -> bool:
        ...

    def is_enrolled(self) -> bool:
        ...

    def authenticate(self, prompt_message: str) -> bool:
        ...
