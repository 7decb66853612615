"""Domain error taxonomy for the ledger.

Every error carries a human message, a machine ``code`` and a ``details``
mapping with JSON-friendly values. Routers translate them into HTTP
responses via ``ledger.utils.exceptions.raise_domain_error``.
"""

from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


class AccountingError(Exception):
    """Base exception for accounting errors."""

    code = "ACCOUNTING_ERROR"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = {key: _jsonable(value) for key, value in details.items()}


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal | UUID):
        return str(value)
    return value


class ValidationError(AccountingError):
    """Missing or malformed input, or an operation the ledger rules forbid."""

    code = "VALIDATION_ERROR"


class DuplicateCodeError(AccountingError):
    """An account code or transaction number already exists for the entity."""

    code = "DUPLICATE_CODE"


class UnbalancedTransactionError(AccountingError):
    """Total debits and credits differ by more than the tolerance."""

    code = "UNBALANCED_TRANSACTION"

    def __init__(self, total_debit: Decimal, total_credit: Decimal) -> None:
        self.total_debit = total_debit
        self.total_credit = total_credit
        self.delta = abs(total_debit - total_credit)
        super().__init__(
            f"Transaction not balanced: debit={total_debit}, credit={total_credit}, delta={self.delta}",
            delta=self.delta,
            total_debit=total_debit,
            total_credit=total_credit,
        )


class InvalidStateTransitionError(AccountingError):
    code = "INVALID_STATE_TRANSITION"

    def __init__(self, current_status: Any, target_status: Any) -> None:
        self.current_status = current_status
        self.target_status = target_status
        current = getattr(current_status, "value", current_status)
        target = getattr(target_status, "value", target_status)
        super().__init__(
            f"Cannot move transaction from {current} to {target}",
            current_status=current,
            target_status=target,
        )


class NotFoundError(AccountingError):
    code = "NOT_FOUND"


class HasActiveChildrenError(AccountingError):
    """Account still has active child accounts."""

    code = "HAS_ACTIVE_CHILDREN"


class ConcurrentModificationError(AccountingError):
    """A row changed underneath the current unit of work."""

    code = "CONCURRENT_MODIFICATION"


class AccountingEquationViolation(AccountingError):
    """Assets do not equal liabilities plus equity.

    Signals corrupted ledger data; never corrected silently.
    """

    code = "ACCOUNTING_EQUATION_VIOLATION"

    def __init__(
        self, total_assets: Decimal, total_liabilities_and_equity: Decimal
    ) -> None:
        self.delta = total_assets - total_liabilities_and_equity
        super().__init__(
            "Accounting equation violated: "
            f"assets={total_assets}, liabilities+equity={total_liabilities_and_equity}",
            delta=self.delta,
            total_assets=total_assets,
            total_liabilities_and_equity=total_liabilities_and_equity,
        )


class ReportError(AccountingError):
    """Raised when report generation fails or input is invalid."""

    code = "REPORT_ERROR"
