"""
JournalEntry dataclass for the per-database journal.
"""

import base64
import json
from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum
from typing import Any

from tablestore.models.exceptions import DataError


class Operation(IntEnum):
    """Kind of change recorded by a journal entry."""

    PUT = 0
    DELETE = 1
    CLEAR = 2
    CREATE_STORE = 3
    DELETE_STORE = 4
    CREATE_INDEX = 5
    DELETE_INDEX = 6
    SET_VERSION = 7
    SET_COUNTER = 8


# Tags for values JSON has no type for. A dict whose own keys could be read as
# a tag is wrapped in "$dict"; a dict with non-string keys is stored as "$map" pairs.
TUPLE_TAG = "$tuple"
BYTES_TAG = "$bytes"
DATE_TAG = "$date"
DICT_TAG = "$dict"
MAP_TAG = "$map"


def _encode(value: Any) -> Any:
    if isinstance(value, tuple):
        return {TUPLE_TAG: [_encode(item) for item in value]}
    if isinstance(value, (bytes, bytearray)):
        return {BYTES_TAG: base64.b64encode(bytes(value)).decode("ascii")}
    if isinstance(value, datetime):
        return {DATE_TAG: value.isoformat()}
    if isinstance(value, dict):
        if not all(isinstance(k, str) for k in value):
            return {MAP_TAG: [[_encode(k), _encode(v)] for k, v in value.items()]}
        encoded = {k: _encode(v) for k, v in value.items()}
        if any(k.startswith("$") for k in value):
            return {DICT_TAG: encoded}
        return encoded
    if isinstance(value, list):
        return [_encode(item) for item in value]
    return value


def _decode(value: Any) -> Any:
    if isinstance(value, list):
        return [_decode(item) for item in value]
    if not isinstance(value, dict):
        return value

    if len(value) == 1:
        tag, inner = next(iter(value.items()))
        if tag == TUPLE_TAG:
            return tuple(_decode(item) for item in inner)
        if tag == BYTES_TAG:
            return base64.b64decode(inner, validate=True)
        if tag == DATE_TAG:
            return datetime.fromisoformat(inner)
        if tag == DICT_TAG:
            return {k: _decode(v) for k, v in inner.items()}
        if tag == MAP_TAG:
            return {_decode(k): _decode(v) for k, v in inner}
    return {k: _decode(v) for k, v in value.items()}


@dataclass
class JournalEntry:
    """
    Represents a single change in the journal.

    Attributes:
        op: The kind of change.
        store: Object store the change applies to (None for SET_VERSION).
        key: Primary key for PUT and DELETE.
        payload: Record for PUT, options for schema changes, number for
            SET_VERSION and SET_COUNTER.
        seq: Sequence number for ordering entries.
    """

    op: Operation
    store: str | None = None
    key: Any = None
    payload: Any = None
    seq: int = 0

    def __bytes__(self) -> bytes:
        """
        Serialize the entry to bytes for storage.

        Format: [seq:8][json body]

        Raises:
            DataError: If the key or payload is not JSON-serializable.
        """
        body = {
            "op": int(self.op),
            "store": self.store,
            "key": _encode(self.key),
            "payload": _encode(self.payload),
        }
        try:
            body_bytes = json.dumps(body, separators=(",", ":")).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise DataError(f"cannot persist {self.op.name} on {self.store!r}: {e}") from e
        return self.seq.to_bytes(8, "big") + body_bytes

    @classmethod
    def from_bytes(cls, data: bytes) -> "JournalEntry":
        """
        Deserialize from bytes.

        Raises:
            DataError: If the body is not a well-formed entry.
        """
        seq = int.from_bytes(data[:8], "big")
        try:
            body = json.loads(data[8:].decode("utf-8"))
            return cls(
                op=Operation(body["op"]),
                store=body["store"],
                key=_decode(body["key"]),
                payload=_decode(body["payload"]),
                seq=seq,
            )
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            raise DataError(f"malformed journal entry {seq}: {e}") from e
