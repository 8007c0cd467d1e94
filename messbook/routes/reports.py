from fastapi import APIRouter, Depends, status
from typing import List, Union

from messbook.db.mongo import get_db
from messbook.core.auth import get_current_user, require_admin
from messbook.core.exceptions import PermissionDeniedError
from messbook.models.report import MonthlyReport
from messbook.models.user import UserResponse
from messbook.schemas.report import (
    MemberReportResponse,
    MonthRequest,
    MonthStatusResponse,
    MonthValidation,
    RelockResponse,
    ReportHistoryEntry,
    ReportResponse,
    UserLineResponse,
)
from messbook.services.settlement_service import SettlementService

router = APIRouter(prefix="/reports", tags=["reports"])


def _to_report_response(report: MonthlyReport) -> ReportResponse:
    """Convert MonthlyReport model to ReportResponse schema."""
    return ReportResponse(
        id=str(report.id),
        month=report.month,
        year=report.year,
        month_name=report.month_name,
        meal_weighting=report.meal_weighting,
        total_consumption_units=report.total_consumption_units,
        total_expenses=report.total_expenses,
        cost_per_unit=report.cost_per_unit,
        expense_breakdown=report.expense_breakdown,
        user_lines=[UserLineResponse.model_validate(line) for line in report.user_lines],
        closed_at=report.closed_at,
        closed_by=str(report.closed_by),
        locked=report.locked
    )


def _line_for(report: MonthlyReport, user_id: str):
    line = report.line_for(user_id)
    return UserLineResponse.model_validate(line) if line else None


@router.post("/validate", response_model=MonthValidation)
async def validate_month(
    payload: MonthRequest,
    current_user: UserResponse = Depends(require_admin),
    db = Depends(get_db)
):
    """Check whether a month can be closed. Changes nothing."""
    return await SettlementService(db).validate_month(payload.month)


@router.post("/close-month", response_model=ReportResponse, status_code=status.HTTP_201_CREATED)
async def close_month(
    payload: MonthRequest,
    current_user: UserResponse = Depends(require_admin),
    db = Depends(get_db)
):
    """Settle a month and lock all of its records. Cannot be undone."""
    report = await SettlementService(db).close_month(payload.month, closed_by=current_user.id)
    return _to_report_response(report)


@router.post("/{month}/relock", response_model=RelockResponse)
async def relock_month(
    month: str,
    current_user: UserResponse = Depends(require_admin),
    db = Depends(get_db)
):
    """Finish an interrupted lock sweep for a closed month."""
    service = SettlementService(db)
    counts = await service.relock_month(month)
    return RelockResponse(month=month, **counts)


@router.get("", response_model=List[ReportResponse])
async def list_reports(
    current_user: UserResponse = Depends(get_current_user),
    db = Depends(get_db)
):
    """List all closed months, most recent first."""
    reports = await SettlementService(db).list_reports()
    return [_to_report_response(report) for report in reports]


@router.get("/status/{month}", response_model=MonthStatusResponse)
async def month_status(
    month: str,
    current_user: UserResponse = Depends(get_current_user),
    db = Depends(get_db)
):
    return await SettlementService(db).month_status(month)


@router.get("/user/{user_id}", response_model=List[ReportHistoryEntry])
async def user_report_history(
    user_id: str,
    current_user: UserResponse = Depends(get_current_user),
    db = Depends(get_db)
):
    """A member's line from every closed month."""
    if not current_user.is_admin and current_user.id != user_id:
        raise PermissionDeniedError("Not authorized to access these reports")

    reports = await SettlementService(db).list_reports()
    return [
        ReportHistoryEntry(
            month=report.month,
            year=report.year,
            month_name=report.month_name,
            cost_per_unit=report.cost_per_unit,
            user_line=_line_for(report, user_id),
            closed_at=report.closed_at
        )
        for report in reports
    ]


@router.get("/{month}", response_model=Union[ReportResponse, MemberReportResponse])
async def get_report(
    month: str,
    current_user: UserResponse = Depends(get_current_user),
    db = Depends(get_db)
):
    """Full report for admins; members only see their own line."""
    report = await SettlementService(db).get_report(month)
    if current_user.is_admin:
        return _to_report_response(report)

    return MemberReportResponse(
        month=report.month,
        year=report.year,
        month_name=report.month_name,
        total_consumption_units=report.total_consumption_units,
        total_expenses=report.total_expenses,
        cost_per_unit=report.cost_per_unit,
        expense_breakdown=report.expense_breakdown,
        user_line=_line_for(report, current_user.id),
        closed_at=report.closed_at
    )
