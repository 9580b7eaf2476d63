"""Required-field validation and the caller policy built on top of it."""

from __future__ import annotations

from typing import Any, Iterable

from folio.config.settings import ValidationConfig
from folio.pipeline.record import BookRecord, ValidationResult

DEFAULT_REQUIRED_FIELDS = ("title", "author")


def _attribute_name(field: str) -> str:
    """Accept both attribute names and their camelCase wire aliases."""
    if field in BookRecord.model_fields:
        return field
    for name, info in BookRecord.model_fields.items():
        if info.alias == field:
            return name
    return field


def validate_record(
    record: BookRecord, required_fields: Iterable[str] = DEFAULT_REQUIRED_FIELDS
) -> ValidationResult:
    """Check that every required field is non-empty after trimming. Never mutates ``record``."""
    missing: list[str] = []
    for field in required_fields:
        value = getattr(record, _attribute_name(field), None)
        if value is None or not (value if isinstance(value, (list, dict)) else str(value).strip()):
            missing.append(field)
    return ValidationResult(is_valid=not missing, missing_fields=tuple(missing))


def apply_validation_policy(
    record: BookRecord, result: ValidationResult, config: ValidationConfig
) -> BookRecord:
    """Attach the warning and/or substitute placeholders, as configured.

    Returns ``record`` itself when the result is valid or nothing is configured.
    """
    if result.is_valid:
        return record
    updates: dict[str, Any] = {}
    if config.attach_warning:
        updates["validation_warning"] = {"missingFields": list(result.missing_fields)}
    if config.substitute_missing:
        for field in result.missing_fields:
            placeholder = config.placeholders.get(field)
            if placeholder is not None:
                updates[_attribute_name(field)] = placeholder
    if not updates:
        return record
    return record.model_copy(update=updates)
