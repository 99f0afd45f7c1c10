"""
Validation — Checks applied to externally supplied snippet data.
"""

from snipstore.validation.import_validator import (
    ValidationResult,
    ImportValidator,
)

__all__ = [
    "ValidationResult",
    "ImportValidator",
]
