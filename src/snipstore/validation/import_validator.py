"""
Import Validator — Structural checks for imported snippet collections.

The gate in front of a destructive import. Ensures:
- The document is a list of objects
- Every record carries a title, language and code that are not blank
- Optional fields have the expected types
- Record ids, when given, are unique within the document

Every offending record is reported, not just the first.
"""

from dataclasses import dataclass
from typing import Any


REQUIRED_FIELDS = ("title", "language", "code")
OPTIONAL_TEXT_FIELDS = ("id", "description", "createdAt", "updatedAt")


@dataclass
class ValidationResult:
    """Result of a validation check."""
    valid: bool
    errors: list[str]
    warnings: list[str]

    @classmethod
    def success(cls) -> "ValidationResult":
        return cls(valid=True, errors=[], warnings=[])

    @classmethod
    def failure(cls, errors: list[str], warnings: list[str] | None = None) -> "ValidationResult":
        return cls(valid=False, errors=errors, warnings=warnings or [])

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        """Combine two results."""
        return ValidationResult(
            valid=self.valid and other.valid,
            errors=self.errors + other.errors,
            warnings=self.warnings + other.warnings,
        )


class ImportValidator:
    """
    Validates a decoded import document.

    Records that pass may still lack ``id`` or ``createdAt``; the store
    fills those in when it builds the new collection.
    """

    def validate(self, data: Any) -> ValidationResult:
        """Validate the whole document."""
        if not isinstance(data, list):
            return ValidationResult.failure(
                [f"Expected a list of snippets, got {type(data).__name__}"]
            )

        result = ValidationResult.success()
        for index, record in enumerate(data):
            result = result.merge(self.validate_record(index, record))

        result = result.merge(self._validate_unique_ids(data))
        return result

    def validate_record(self, index: int, record: Any) -> ValidationResult:
        """Validate one element of the document."""
        if not isinstance(record, dict):
            return ValidationResult.failure(
                [f"Record {index}: expected an object, got {type(record).__name__}"]
            )

        errors = []
        warnings = []

        for name in REQUIRED_FIELDS:
            value = record.get(name)
            if not value:
                errors.append(f"Record {index}: missing required field '{name}'")
            elif not isinstance(value, str):
                errors.append(f"Record {index}: '{name}' must be a string")
            elif not value.strip():
                errors.append(f"Record {index}: '{name}' must not be blank")

        for name in OPTIONAL_TEXT_FIELDS:
            value = record.get(name)
            if value is not None and not isinstance(value, str):
                errors.append(f"Record {index}: '{name}' must be a string")

        if "id" in record and record["id"] == "":
            errors.append(f"Record {index}: 'id' must not be empty")

        tags = record.get("tags")
        if tags is not None:
            if not isinstance(tags, list):
                errors.append(f"Record {index}: 'tags' must be a list")
            elif not all(isinstance(tag, str) for tag in tags):
                errors.append(f"Record {index}: every tag must be a string")

        if record.get("id") is None:
            warnings.append(f"Record {index}: no id, one will be generated")

        return ValidationResult(valid=len(errors) == 0, errors=errors, warnings=warnings)

    def _validate_unique_ids(self, data: list[Any]) -> ValidationResult:
        seen: set[str] = set()
        errors = []
        for index, record in enumerate(data):
            if not isinstance(record, dict):
                continue
            snippet_id = record.get("id")
            if not isinstance(snippet_id, str) or not snippet_id:
                continue
            if snippet_id in seen:
                errors.append(f"Record {index}: duplicate id {snippet_id!r}")
            seen.add(snippet_id)
        return ValidationResult(valid=len(errors) == 0, errors=errors, warnings=[])
