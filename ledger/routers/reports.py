"""Financial reporting API router."""

from datetime import date

from fastapi import APIRouter, Query
from fastapi.responses import StreamingResponse

from ledger.deps import CurrentEntityId, DbSession
from ledger.logger import get_logger
from ledger.schemas import (
    BalanceSheetResponse,
    CashFlowResponse,
    ConsistencyResponse,
    ExportReportType,
    IncomeStatementResponse,
    TrialBalanceResponse,
)
from ledger.services.balances import get_trial_balance, verify_balance_consistency
from ledger.services.errors import AccountingError
from ledger.services.reporting import (
    CashFlowClassification,
    export_report_csv,
    generate_balance_sheet,
    generate_cash_flow,
    generate_income_statement,
)
from ledger.utils.exceptions import raise_domain_error

router = APIRouter(prefix="/reports", tags=["reports"])
logger = get_logger(__name__)


@router.get("/trial-balance", response_model=TrialBalanceResponse)
async def trial_balance(
    as_of_date: date | None = Query(default=None),
    db: DbSession = None,
    entity_id: CurrentEntityId = None,
) -> TrialBalanceResponse:
    report = await get_trial_balance(db, entity_id, as_of_date or date.today())
    return TrialBalanceResponse(**report)


@router.get("/balance-sheet", response_model=BalanceSheetResponse)
async def balance_sheet(
    as_of_date: date | None = Query(default=None),
    db: DbSession = None,
    entity_id: CurrentEntityId = None,
) -> BalanceSheetResponse:
    """Get balance sheet as of date. Refused when the accounting equation fails."""
    try:
        report = await generate_balance_sheet(db, entity_id, as_of_date or date.today())
    except AccountingError as exc:
        raise_domain_error(exc)
    return BalanceSheetResponse(**report)


@router.get("/income-statement", response_model=IncomeStatementResponse)
async def income_statement(
    start_date: date = Query(...),
    end_date: date = Query(...),
    db: DbSession = None,
    entity_id: CurrentEntityId = None,
) -> IncomeStatementResponse:
    """Get income statement for a period."""
    try:
        report = await generate_income_statement(db, entity_id, start_date, end_date)
    except AccountingError as exc:
        logger.warning(
            "Income statement generation failed",
            start_date=str(start_date),
            end_date=str(end_date),
            error=exc.message,
        )
        raise_domain_error(exc)
    return IncomeStatementResponse(**report)


@router.get("/cash-flow", response_model=CashFlowResponse)
async def cash_flow(
    start_date: date = Query(...),
    end_date: date = Query(...),
    db: DbSession = None,
    entity_id: CurrentEntityId = None,
) -> CashFlowResponse:
    """Get cash flow statement for a period using the configured classification."""
    try:
        report = await generate_cash_flow(
            db,
            entity_id,
            start_date,
            end_date,
            classification=CashFlowClassification.from_settings(),
        )
    except AccountingError as exc:
        logger.warning(
            "Cash flow generation failed",
            start_date=str(start_date),
            end_date=str(end_date),
            error=exc.message,
        )
        raise_domain_error(exc)
    return CashFlowResponse(**report)


@router.get("/consistency", response_model=ConsistencyResponse)
async def balance_consistency(
    db: DbSession,
    entity_id: CurrentEntityId,
) -> ConsistencyResponse:
    """Compare stored running balances with balances recomputed from entries."""
    report = await verify_balance_consistency(db, entity_id)
    return ConsistencyResponse(**report)


@router.get("/export")
async def export_report(
    report_type: ExportReportType = Query(...),
    as_of_date: date | None = Query(default=None),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    db: DbSession = None,
    entity_id: CurrentEntityId = None,
) -> StreamingResponse:
    """Export reports in CSV format."""
    try:
        content = await export_report_csv(
            db,
            entity_id,
            report_type.value,
            as_of_date=as_of_date,
            start_date=start_date,
            end_date=end_date,
        )
    except AccountingError as exc:
        raise_domain_error(exc)

    filename = f"{report_type.value}.csv"
    return StreamingResponse(
        iter([content]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
