from enum import Enum
from typing import Any, Iterable, Mapping

import pydantic
from pydantic import BaseModel

from .errors import FieldError, ValidationError
from .schemas import (
    AccountCreate,
    AccountUpdate,
    CategoryCreate,
    CategoryUpdate,
    EventCreate,
    EventUpdate,
    GoalCreate,
    GoalUpdate,
    RegisterRequest,
    TransactionCreate,
    TransactionUpdate,
)

CREATE_MODELS: dict[str, type[BaseModel]] = {
    "users": RegisterRequest,
    "categories": CategoryCreate,
    "transactions": TransactionCreate,
    "goals": GoalCreate,
    "events": EventCreate,
    "accounts": AccountCreate,
}

UPDATE_MODELS: dict[str, type[BaseModel]] = {
    "categories": CategoryUpdate,
    "transactions": TransactionUpdate,
    "goals": GoalUpdate,
    "events": EventUpdate,
    "accounts": AccountUpdate,
}


def field_errors(errors: Iterable[Mapping[str, Any]], skip: tuple[str, ...] = ("body",)) -> list[FieldError]:
    details: list[FieldError] = []
    for err in errors:
        loc = ".".join(str(item) for item in err.get("loc", ()) if item not in skip)
        details.append(FieldError(field=loc or "body", message=err.get("msg", "validation error")))
    return details


def row_values(model: BaseModel, partial: bool = False) -> dict[str, Any]:
    """Dump a validated model into store values, enums reduced to their string values."""
    data = model.model_dump(exclude_unset=partial)
    return {key: (value.value if isinstance(value, Enum) else value) for key, value in data.items()}


def _validate(model: type[BaseModel], payload: Any) -> BaseModel:
    if not isinstance(payload, Mapping):
        raise ValidationError([FieldError(field="body", message="payload must be an object")])
    try:
        return model.model_validate(dict(payload))
    except pydantic.ValidationError as exc:
        raise ValidationError(field_errors(exc.errors())) from exc


def validate_create(kind: str, payload: Any) -> dict[str, Any]:
    """Check a full create payload and return the normalized field values."""
    model = CREATE_MODELS[kind]
    return row_values(_validate(model, payload))


def validate_update(kind: str, payload: Any) -> dict[str, Any]:
    """Check a partial payload; only the fields actually supplied are returned."""
    model = UPDATE_MODELS[kind]
    return row_values(_validate(model, payload), partial=True)
