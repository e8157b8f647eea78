"""Input validation shared by the service layer.

Services accept identifiers either as UUIDs or as their string form, and
payloads either as schema instances or as plain mappings. Everything is
checked here before a query is issued.
"""

from collections.abc import Iterable, Mapping
from typing import Any, TypeVar
from uuid import UUID

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from sitecms.core.exceptions import InvalidIdentifierError, ValidationError

SchemaT = TypeVar("SchemaT", bound=BaseModel)


def is_valid_id(value: Any) -> bool:
    """Return True if value is a UUID or a string that parses as one."""
    if isinstance(value, UUID):
        return True
    if not isinstance(value, str):
        return False
    try:
        UUID(value)
    except ValueError:
        return False
    return True


def parse_id(value: Any, resource: str, field: str = "id") -> UUID:
    """Parse an identifier or raise InvalidIdentifierError.

    Args:
        value: UUID instance or its string form
        resource: Human readable resource name used in the error message
        field: Request field the value came from

    Returns:
        Parsed UUID
    """
    if isinstance(value, UUID):
        return value
    if not is_valid_id(value):
        raise InvalidIdentifierError(resource, value, field)
    return UUID(value)


def parse_ids(values: Iterable[Any], resource: str, field: str = "ids") -> list[UUID]:
    """Parse a collection of identifiers, failing on the first malformed one."""
    return [parse_id(value, resource, field) for value in values]


def format_errors(exc: PydanticValidationError) -> list[dict[str, Any]]:
    """Flatten pydantic errors into field/message pairs."""
    return [
        {
            "field": ".".join(str(part) for part in error["loc"]) or None,
            "message": error["msg"],
        }
        for error in exc.errors()
    ]


def error_summary(exc: PydanticValidationError) -> str:
    """One-line description of a pydantic failure."""
    return "; ".join(
        f"{e['field']}: {e['message']}" if e["field"] else e["message"]
        for e in format_errors(exc)
    )


def parse_payload(
    schema: type[SchemaT],
    data: SchemaT | Mapping[str, Any],
    message: str = "Invalid request data",
) -> SchemaT:
    """Coerce data into schema, raising the domain ValidationError on failure."""
    if isinstance(data, schema):
        return data
    try:
        return schema.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(message, errors=format_errors(e)) from e
