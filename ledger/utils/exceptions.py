"""Common exception utilities for FastAPI routers.

Error responses carry a JSON body of the form
``{"error": <message>, "code": <machine code>, ...details}``.
"""

from typing import Any, NoReturn

from fastapi import HTTPException, status

from ledger.services.errors import (
    AccountingEquationViolation,
    AccountingError,
    ConcurrentModificationError,
    DuplicateCodeError,
    NotFoundError,
)


def _detail(message: str, code: str, extra: dict[str, Any] | None = None) -> dict[str, Any]:
    return {**(extra or {}), "error": message, "code": code}


def raise_not_found(resource_name: str, *, cause: Exception | None = None) -> NoReturn:
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=_detail(f"{resource_name} not found", "NOT_FOUND"),
    ) from cause


def raise_bad_request(
    detail: str, *, code: str = "BAD_REQUEST", cause: Exception | None = None
) -> NoReturn:
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=_detail(detail, code),
    ) from cause


def raise_unauthorized(detail: str, *, cause: Exception | None = None) -> NoReturn:
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=_detail(detail, "UNAUTHORIZED"),
        headers={"WWW-Authenticate": "Bearer"},
    ) from cause


def raise_conflict(detail: str, *, code: str = "CONFLICT", cause: Exception | None = None) -> NoReturn:
    raise HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail=_detail(detail, code),
    ) from cause


def raise_internal_error(
    detail: str, *, code: str = "INTERNAL_ERROR", cause: Exception | None = None
) -> NoReturn:
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=_detail(detail, code),
    ) from cause


def raise_service_unavailable(detail: str, *, cause: Exception | None = None) -> NoReturn:
    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=_detail(detail, "SERVICE_UNAVAILABLE"),
    ) from cause


def status_for_error(exc: AccountingError) -> int:
    if isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, DuplicateCodeError | ConcurrentModificationError):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, AccountingEquationViolation):
        # The statement is refused rather than rendered with wrong totals
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    return status.HTTP_400_BAD_REQUEST


def raise_domain_error(exc: AccountingError) -> NoReturn:
    """Translate a domain error into an HTTP error with a structured body."""
    raise HTTPException(
        status_code=status_for_error(exc),
        detail=_detail(exc.message, exc.code, exc.details),
    ) from exc
