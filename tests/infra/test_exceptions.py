"""Unit tests for exception utilities."""

from decimal import Decimal

import pytest
from fastapi import HTTPException

from ledger.models import TransactionStatus
from ledger.services.errors import (
    AccountingEquationViolation,
    ConcurrentModificationError,
    DuplicateCodeError,
    HasActiveChildrenError,
    InvalidStateTransitionError,
    NotFoundError,
    UnbalancedTransactionError,
    ValidationError,
)
from ledger.utils.exceptions import (
    raise_bad_request,
    raise_conflict,
    raise_domain_error,
    raise_not_found,
    raise_unauthorized,
    status_for_error,
)


class TestRaiseNotFound:
    def test_basic_usage(self):
        with pytest.raises(HTTPException) as exc_info:
            raise_not_found("Account")
        assert exc_info.value.status_code == 404
        assert exc_info.value.detail == {"error": "Account not found", "code": "NOT_FOUND"}

    def test_preserves_cause(self):
        original = ValueError("Original error")
        with pytest.raises(HTTPException) as exc_info:
            raise_not_found("Account", cause=original)
        assert exc_info.value.__cause__ is original


class TestRaiseBadRequest:
    def test_custom_code(self):
        with pytest.raises(HTTPException) as exc_info:
            raise_bad_request("Invalid input", code="REPORT_ERROR")
        assert exc_info.value.status_code == 400
        assert exc_info.value.detail["code"] == "REPORT_ERROR"


class TestRaiseUnauthorized:
    def test_sets_bearer_challenge(self):
        with pytest.raises(HTTPException) as exc_info:
            raise_unauthorized("Invalid token")
        assert exc_info.value.status_code == 401
        assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}


class TestRaiseConflict:
    def test_basic_usage(self):
        with pytest.raises(HTTPException) as exc_info:
            raise_conflict("Already exists")
        assert exc_info.value.status_code == 409
        assert exc_info.value.detail["error"] == "Already exists"


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (NotFoundError("missing"), 404),
        (DuplicateCodeError("dup"), 409),
        (ConcurrentModificationError("race"), 409),
        (ValidationError("bad"), 400),
        (HasActiveChildrenError("children"), 400),
        (UnbalancedTransactionError(Decimal("100.00"), Decimal("50.00")), 400),
        (InvalidStateTransitionError(TransactionStatus.POSTED, TransactionStatus.POSTED), 400),
        (AccountingEquationViolation(Decimal("10.00"), Decimal("9.00")), 500),
    ],
)
def test_status_for_error(error, expected):
    assert status_for_error(error) == expected


def test_raise_domain_error_carries_code_and_details():
    error = UnbalancedTransactionError(Decimal("100.00"), Decimal("50.00"))

    with pytest.raises(HTTPException) as exc_info:
        raise_domain_error(error)

    detail = exc_info.value.detail
    assert exc_info.value.status_code == 400
    assert exc_info.value.__cause__ is error
    assert detail["code"] == "UNBALANCED_TRANSACTION"
    assert detail["delta"] == "50.00"
    assert "not balanced" in detail["error"]


def test_invalid_transition_details_use_enum_values():
    error = InvalidStateTransitionError(TransactionStatus.CANCELLED, TransactionStatus.POSTED)
    assert error.details == {"current_status": "CANCELLED", "target_status": "POSTED"}
