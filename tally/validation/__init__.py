"""Validation package."""

from tally.validation.validator import (
    InvalidMobileError,
    InvalidNameError,
    LedgerValidationError,
    LedgerValidator,
    MissingPersonError,
    NonPositiveAmountError,
    ValidationIssue,
    ValidationResult,
)

__all__ = [
    "InvalidMobileError",
    "InvalidNameError",
    "LedgerValidationError",
    "LedgerValidator",
    "MissingPersonError",
    "NonPositiveAmountError",
    "ValidationIssue",
    "ValidationResult",
]
