from dataclasses import dataclass
from typing import Any


@dataclass
class FieldError:
    field: str
    message: str


class FinanceTrackerError(Exception):
    code = "ERROR"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(FinanceTrackerError):
    """Malformed or missing fields on a write. Nothing is persisted."""

    code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(self, details: list[FieldError], message: str = "Invalid request payload") -> None:
        super().__init__(message)
        self.details = details

    @property
    def fields(self) -> list[str]:
        return [d.field for d in self.details]


class InvalidInput(FinanceTrackerError):
    """An identifier (userId or path id) that is not a non-negative integer."""

    code = "INVALID_INPUT"
    status_code = 400

    def __init__(self, field: str, value: Any) -> None:
        super().__init__(f"invalid {field}: {value!r}")
        self.field = field
        self.value = value


class NotFound(FinanceTrackerError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, kind: str, entity_id: int) -> None:
        super().__init__(f"{kind} not found: {entity_id}")
        self.kind = kind
        self.entity_id = entity_id


class Conflict(FinanceTrackerError):
    code = "CONFLICT"
    status_code = 409


class Unauthorized(FinanceTrackerError):
    code = "UNAUTHORIZED"
    status_code = 401


class StorageError(FinanceTrackerError):
    code = "STORAGE_ERROR"
    status_code = 500


class AggregationFailure(FinanceTrackerError):
    """One of the dashboard fetches failed; the whole summary is withheld."""

    code = "AGGREGATION_FAILURE"
    status_code = 500

    def __init__(self, message: str = "Error fetching dashboard data") -> None:
        super().__init__(message)


def parse_id(value: Any, field: str = "id") -> int:
    if isinstance(value, bool):
        raise InvalidInput(field, value)
    if isinstance(value, int):
        parsed = value
    else:
        try:
            parsed = int(str(value).strip())
        except (TypeError, ValueError) as exc:
            raise InvalidInput(field, value) from exc
    if parsed < 0:
        raise InvalidInput(field, value)
    return parsed
