"""
StoreData and IndexData - in-memory contents of one object store.
"""

import bisect
import copy
from collections.abc import Iterator
from typing import Any

from tablestore.models.exceptions import ConstraintError, DataError, NotFoundError
from tablestore.models.keys import (
    evaluate_key_path,
    has_key_path,
    inject_key,
    is_valid_key,
    normalize_key,
    sort_key,
)


class IndexData:
    """
    Secondary index mapping an index key to the primary keys holding it.

    Primary keys per index key are kept in key order, so ``first`` returns
    the record with the lowest primary key.
    """

    def __init__(self, name: str, key_path: str, unique: bool = False) -> None:
        self.name = name
        self.key_path = key_path
        self.unique = unique
        self._entries: dict[Any, list[Any]] = {}

    def index_key(self, record: dict) -> Any | None:
        """Return the normalized index key of a record, or None if not indexed."""
        value = evaluate_key_path(record, self.key_path)
        if value is None or not is_valid_key(value):
            return None
        return normalize_key(value)

    def check(self, index_key: Any, primary_key: Any) -> None:
        """Raise ConstraintError if adding the pair would break uniqueness."""
        if not self.unique or index_key is None:
            return
        holders = self._entries.get(index_key, [])
        if any(holder != primary_key for holder in holders):
            raise ConstraintError(
                f"unique index {self.name!r} already holds {index_key!r}"
            )

    def add(self, index_key: Any, primary_key: Any) -> None:
        if index_key is None:
            return
        holders = self._entries.setdefault(index_key, [])
        bisect.insort(holders, primary_key, key=sort_key)

    def remove(self, index_key: Any, primary_key: Any) -> None:
        if index_key is None:
            return
        holders = self._entries.get(index_key)
        if not holders:
            return
        holders.remove(primary_key)
        if not holders:
            del self._entries[index_key]

    def first(self, index_key: Any) -> Any | None:
        holders = self._entries.get(index_key)
        return holders[0] if holders else None

    def primary_keys(self, index_key: Any) -> list[Any]:
        return list(self._entries.get(index_key, []))

    def clear(self) -> None:
        self._entries.clear()

    def clone(self) -> "IndexData":
        other = IndexData(self.name, self.key_path, self.unique)
        other._entries = {k: list(v) for k, v in self._entries.items()}
        return other

    def describe(self) -> dict[str, Any]:
        return {"name": self.name, "key_path": self.key_path, "unique": self.unique}


class StoreData:
    """
    Records of one object store, ordered by primary key.

    Supports:
    - O(log N) ordered insert, O(1) point lookup by primary key
    - Secondary indexes maintained on every write
    - Auto-increment key generation
    - Cheap cloning for copy-on-write transactions

    Records held here are private copies; callers copy on the way in and out.
    """

    def __init__(self, name: str, key_path: str, auto_increment: bool = False) -> None:
        if not key_path:
            raise DataError(f"store {name!r} needs a key path")
        self.name = name
        self.key_path = key_path
        self.auto_increment = auto_increment
        self.counter = 0
        self._records: dict[Any, dict] = {}
        self._keys: list[Any] = []
        self.indexes: dict[str, IndexData] = {}

    def assign_key(self, record: dict) -> Any:
        """
        Determine the primary key of a record, generating one if allowed.

        A generated key is injected into ``record`` at the key path.

        Raises:
            DataError: If the key is missing and cannot be generated, or invalid.
        """
        if has_key_path(record, self.key_path):
            value = evaluate_key_path(record, self.key_path)
            if value is not None:
                key = normalize_key(value)
                if self.auto_increment and isinstance(key, (int, float)) and key >= self.counter:
                    self.counter = int(key)
                return key

        if not self.auto_increment:
            raise DataError(
                f"record for store {self.name!r} has no key at {self.key_path!r}"
            )
        self.counter += 1
        inject_key(record, self.key_path, self.counter)
        return self.counter

    def contains(self, key: Any) -> bool:
        return key in self._records

    def get(self, key: Any) -> dict | None:
        return self._records.get(key)

    def put_record(self, key: Any, record: dict, overwrite: bool = True) -> None:
        """
        Store a record under ``key``, updating every index.

        Raises:
            ConstraintError: On a key collision without ``overwrite`` or a
                unique index violation. The store is left unchanged.
        """
        previous = self._records.get(key)
        if previous is not None and not overwrite:
            raise ConstraintError(
                f"key {key!r} already exists in store {self.name!r}"
            )

        index_keys = {name: index.index_key(record) for name, index in self.indexes.items()}
        for name, index in self.indexes.items():
            index.check(index_keys[name], key)

        if previous is None:
            bisect.insort(self._keys, key, key=sort_key)
        else:
            for index in self.indexes.values():
                index.remove(index.index_key(previous), key)
        for name, index in self.indexes.items():
            index.add(index_keys[name], key)
        self._records[key] = record

    def delete(self, key: Any) -> bool:
        record = self._records.pop(key, None)
        if record is None:
            return False
        pos = bisect.bisect_left(self._keys, sort_key(key), key=sort_key)
        # Distinct keys can share a sort position, e.g. naive and aware datetimes.
        while self._keys[pos] != key:
            pos += 1
        del self._keys[pos]
        for index in self.indexes.values():
            index.remove(index.index_key(record), key)
        return True

    def clear(self) -> None:
        self._records.clear()
        self._keys.clear()
        for index in self.indexes.values():
            index.clear()

    def records(self) -> Iterator[dict]:
        for key in self._keys:
            yield self._records[key]

    def count(self) -> int:
        return len(self._records)

    def create_index(self, name: str, key_path: str, unique: bool = False) -> IndexData:
        """
        Create an index and populate it from the existing records.

        Raises:
            ConstraintError: If the name is taken or existing records violate uniqueness.
        """
        if name in self.indexes:
            raise ConstraintError(f"index {name!r} already exists on store {self.name!r}")
        index = IndexData(name, key_path or name, unique)
        for key in self._keys:
            index_key = index.index_key(self._records[key])
            index.check(index_key, key)
            index.add(index_key, key)
        self.indexes[name] = index
        return index

    def delete_index(self, name: str) -> None:
        if name not in self.indexes:
            raise NotFoundError(f"no index {name!r} on store {self.name!r}")
        del self.indexes[name]

    def index(self, name: str) -> IndexData:
        try:
            return self.indexes[name]
        except KeyError:
            raise NotFoundError(f"no index {name!r} on store {self.name!r}") from None

    def clone(self) -> "StoreData":
        other = StoreData(self.name, self.key_path, self.auto_increment)
        other.counter = self.counter
        other._records = dict(self._records)
        other._keys = list(self._keys)
        other.indexes = {name: index.clone() for name, index in self.indexes.items()}
        return other

    def describe(self) -> dict[str, Any]:
        return {"key_path": self.key_path, "auto_increment": self.auto_increment}


def copy_record(record: Any) -> Any:
    return copy.deepcopy(record)
