"""
Typed validation results for data crossing into the engine.

Content tables and save files are validated at the boundary. Failures are
returned as a ValidationResult carrying structured issues (kind + path +
message); they never propagate as exceptions into game logic.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Generic, Optional, TypeVar, Union

from pydantic import BaseModel, TypeAdapter, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ValidationIssue:
    """
    One validation problem.

    kind is "schema", "reference", "checksum", "version" or "io".
    """

    kind: str
    path: str
    message: str

    def __str__(self) -> str:
        location = self.path or "<root>"
        return f"[{self.kind}] {location}: {self.message}"


@dataclass
class ValidationResult(Generic[T]):
    """Outcome of a boundary validation."""

    success: bool
    value: Optional[T] = None
    errors: list[ValidationIssue] = field(default_factory=list)

    @classmethod
    def ok(cls, value: T) -> "ValidationResult[T]":
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, errors: list[ValidationIssue]) -> "ValidationResult[T]":
        return cls(success=False, value=None, errors=list(errors))

    def format_errors(self) -> str:
        return "\n".join(str(issue) for issue in self.errors)


def format_error_path(location: tuple[Union[str, int], ...], prefix: str = "") -> str:
    """Join a pydantic error location into a dotted path."""
    parts = [prefix] if prefix else []
    parts.extend(str(part) for part in location)
    return ".".join(parts)


def issues_from_validation_error(error: ValidationError, prefix: str = "") -> list[ValidationIssue]:
    """Convert a pydantic ValidationError into schema issues."""
    return [
        ValidationIssue(
            kind="schema",
            path=format_error_path(detail["loc"], prefix),
            message=detail["msg"],
        )
        for detail in error.errors()
    ]


def validate_model(
    schema: Union[type[BaseModel], TypeAdapter],
    data: Any,
    prefix: str = "",
) -> ValidationResult:
    """
    Validate raw data against a pydantic model or TypeAdapter.

    Args:
        schema: Model class or TypeAdapter to validate with
        data: Raw (JSON-like) data
        prefix: Optional path prefix for reported issues (e.g., a file name)

    Returns:
        ValidationResult holding the parsed value or the schema issues
    """
    try:
        if isinstance(schema, TypeAdapter):
            value = schema.validate_python(data)
        else:
            value = schema.model_validate(data)
    except ValidationError as e:
        issues = issues_from_validation_error(e, prefix)
        logger.debug(f"Validation failed for {prefix or schema}: {len(issues)} issue(s)")
        return ValidationResult.fail(issues)
    return ValidationResult.ok(value)
