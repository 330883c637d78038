"""
Column declarations for table creation.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class Column:
    """
    A declared column, indexed on the field of the same name.

    Attributes:
        name: Field name, also used as the index name.
        unique: Whether the index rejects duplicate values.
    """

    name: str
    unique: bool = False

    @classmethod
    def parse(cls, spec: Any) -> "Column":
        """
        Build a Column from a bare name, a Column, or a ``{"name", "unique"}`` mapping.

        Raises:
            ValueError: If the declaration has no usable name.
            TypeError: If the declaration has an unsupported type.
        """
        if isinstance(spec, Column):
            column = spec
        elif isinstance(spec, str):
            column = cls(name=spec)
        elif isinstance(spec, Mapping):
            column = cls(name=spec.get("name"), unique=bool(spec.get("unique", False)))
        else:
            raise TypeError(f"unsupported column declaration: {spec!r}")

        if not isinstance(column.name, str) or not column.name:
            raise ValueError(f"column declaration needs a non-empty name: {spec!r}")
        return column


ColumnSpec = Union[str, Column, Mapping[str, Any]]


def parse_columns(columns: Iterable[ColumnSpec] | None) -> list[Column]:
    """Parse column declarations, keeping order and duplicates."""
    if columns is None:
        return []
    return [Column.parse(spec) for spec in columns]
