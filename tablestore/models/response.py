"""
Response envelope returned (or raised) by every table operation.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any


class Status(IntEnum):
    """Outcome codes, mirroring the HTTP status codes of the same meaning."""

    OK = 200
    CREATED = 201
    BAD_REQUEST = 400
    NOT_FOUND = 404
    CONFLICT = 409
    INTERNAL_ERROR = 500


@dataclass
class Response:
    """
    Uniform result shape for successes and failures.

    Attributes:
        message: Human readable description of the outcome.
        status: Outcome code.
        error: Engine error behind a failure, if any.
        schema: Column names of a table, echoed by table creation.
    """

    message: str
    status: Status
    error: Any = None
    schema: list[str] | None = None

    def __post_init__(self) -> None:
        self.status = Status(self.status)

    @property
    def ok(self) -> bool:
        return self.status < 300

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"message": self.message, "status": int(self.status)}
        if self.error is not None:
            d["error"] = self.error
        if self.schema is not None:
            d["schema"] = list(self.schema)
        return d


class OperationError(Exception):
    """
    Raised when a table operation fails at the engine level.

    Carries the failure envelope; the engine exception is available both as
    ``error`` and as ``__cause__``.
    """

    def __init__(self, response: Response):
        self.response = response
        super().__init__(response.message)

    @property
    def status(self) -> Status:
        return self.response.status

    @property
    def message(self) -> str:
        return self.response.message

    @property
    def error(self) -> Any:
        return self.response.error
