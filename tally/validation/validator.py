"""
Ledger Input Validation

Two ways to ask the same questions:

ADVISORY: check_person() / check_transaction() return a ValidationResult.
Forms use this to decide whether the submit button is enabled and which
message to show next to which field.

ENFORCED: require_person() / require_transaction() raise a typed
LedgerValidationError for the first problem found. LedgerService calls
these, so a caller that skips the form still cannot store an invalid record.

Rules:
- name and mobile must be non-blank after trimming
- amount must be greater than zero
- a transaction must belong to a person
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from tally.models.ledger import LedgerError, Person


class LedgerValidationError(LedgerError):
    """A record failed validation before it reached storage."""

    code = "invalid"
    field = ""

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message())

    @classmethod
    def default_message(cls) -> str:
        return f"Invalid {cls.field}"


class InvalidNameError(LedgerValidationError):
    code = "invalid_name"
    field = "name"

    @classmethod
    def default_message(cls) -> str:
        return "Name is required"


class InvalidMobileError(LedgerValidationError):
    code = "invalid_mobile"
    field = "mobile"

    @classmethod
    def default_message(cls) -> str:
        return "Mobile number is required"


class NonPositiveAmountError(LedgerValidationError):
    code = "non_positive_amount"
    field = "amount"

    @classmethod
    def default_message(cls) -> str:
        return "Amount must be greater than zero"


class MissingPersonError(LedgerValidationError):
    code = "missing_person"
    field = "person"

    @classmethod
    def default_message(cls) -> str:
        return "Select who this transaction is with"


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    code: str = Field(
        ...,
        description="Machine-readable error code"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )


class ValidationResult(BaseModel):
    """Outcome of an advisory check."""

    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.issues

    @property
    def error_count(self) -> int:
        return len(self.issues)

    def message_for(self, field: str) -> Optional[str]:
        """First message for a field, for inline display."""
        for issue in self.issues:
            if issue.field == field:
                return issue.message
        return None


def _issue(error: type[LedgerValidationError]) -> ValidationIssue:
    return ValidationIssue(
        field=error.field,
        code=error.code,
        message=error.default_message(),
    )


class LedgerValidator:
    """Validates person and transaction input."""

    def _person_errors(
        self,
        name: Optional[str],
        mobile: Optional[str],
    ) -> list[type[LedgerValidationError]]:
        errors = []
        if not (name or "").strip():
            errors.append(InvalidNameError)
        if not (mobile or "").strip():
            errors.append(InvalidMobileError)
        return errors

    def _transaction_errors(
        self,
        amount: Optional[Decimal],
        person: Optional[Person],
    ) -> list[type[LedgerValidationError]]:
        errors = []
        if amount is None or not Decimal(amount).is_finite() or Decimal(amount) <= 0:
            errors.append(NonPositiveAmountError)
        if person is None:
            errors.append(MissingPersonError)
        return errors

    def check_person(
        self,
        name: Optional[str],
        mobile: Optional[str],
    ) -> ValidationResult:
        return ValidationResult(
            issues=[_issue(e) for e in self._person_errors(name, mobile)]
        )

    def check_transaction(
        self,
        amount: Optional[Decimal],
        person: Optional[Person],
    ) -> ValidationResult:
        return ValidationResult(
            issues=[_issue(e) for e in self._transaction_errors(amount, person)]
        )

    def require_person(
        self,
        name: Optional[str],
        mobile: Optional[str],
    ) -> None:
        """Raise the first person error, if any."""
        errors = self._person_errors(name, mobile)
        if errors:
            raise errors[0]()

    def require_transaction(
        self,
        amount: Optional[Decimal],
        person: Optional[Person],
    ) -> None:
        """Raise the first transaction error, if any."""
        errors = self._transaction_errors(amount, person)
        if errors:
            raise errors[0]()
