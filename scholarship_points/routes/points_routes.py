"""
Points HTTP routes: activity events, accounts, ledger and analytics.
"""
from datetime import date, datetime, timedelta
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from scholarship_points.constants import (
    ANALYTICS_TIME_FRAMES,
    DEFAULT_ANALYTICS_DAYS,
    DEFAULT_PAGE_LIMIT,
    MAX_PAGE_LIMIT,
)
from scholarship_points.database import get_db
from scholarship_points.exceptions import ValidationError
from scholarship_points.schemas import (
    ActivityEvent,
    AccountResponse,
    AwardResponse,
    ReverseRequest,
    TransactionResponse,
    TransactionSummary,
)
from scholarship_points.services.account_service import AccountService
from scholarship_points.services.date_service import DateService, utcnow
from scholarship_points.services.ledger_service import LedgerService
from scholarship_points.services.points_service import AwardResult, PointsService
from .responses import envelope, paginated

router = APIRouter(prefix="/api/points", tags=["points"])


def _award_payload(result: AwardResult) -> AwardResponse:
    return AwardResponse(
        awarded=result.awarded,
        new_total=result.new_total,
        new_level=result.new_level,
        level_name=result.level_name,
        points_to_next=result.points_to_next,
        transaction=TransactionResponse.model_validate(result.transaction),
    )


def _date_bounds(start_date: Optional[date], end_date: Optional[date]):
    """Inclusive date range to [start, end) datetimes"""
    if start_date and end_date and start_date > end_date:
        raise ValidationError("start_date", "must not be after end_date")
    start = DateService.day_range(start_date)[0] if start_date else None
    end = DateService.day_range(end_date)[1] if end_date else None
    return start, end


# ===== EVENTS =====

@router.post("/events", status_code=status.HTTP_201_CREATED)
def record_event(event: ActivityEvent, db: Session = Depends(get_db)):
    """Record an activity event and award points under the active configuration."""
    result = PointsService(db).compute_award(event)
    return envelope(_award_payload(result).model_dump())


# ===== ACCOUNTS =====

@router.get("/accounts/{student_id}")
def get_account(student_id: str, db: Session = Depends(get_db)):
    """Get total points, level and limit usage for a student."""
    account = AccountService(db).get_account(student_id)
    return envelope(AccountResponse(**account).model_dump())


@router.post("/accounts/{student_id}/reconcile")
def reconcile_account(student_id: str, db: Session = Depends(get_db)):
    """Recompute a student's total from the ledger."""
    service = AccountService(db)
    service.reconcile(student_id)
    return envelope(AccountResponse(**service.get_account(student_id)).model_dump())


# ===== TRANSACTIONS =====

@router.get("/transactions/student/{student_id}")
def get_student_transactions(
    student_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    sort: str = Query("timestamp"),
    order: str = Query("desc"),
    source: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db)
):
    """Get a page of a student's ledger."""
    start, end = _date_bounds(start_date, end_date)
    items, total = LedgerService(db).query(
        student_id,
        page=page,
        limit=limit,
        sort=sort,
        order=order,
        source=source,
        start=start,
        end=end,
    )
    return paginated(items, total, page, limit, TransactionResponse)


@router.get("/transactions/student/{student_id}/summary")
def get_student_summary(student_id: str, db: Session = Depends(get_db)):
    """Get totals by source and trailing day/week/month buckets."""
    summary = LedgerService(db).summary(student_id)
    return envelope(TransactionSummary(**summary).model_dump())


@router.get("/transactions/{transaction_id}")
def get_transaction(transaction_id: int, db: Session = Depends(get_db)):
    return envelope(LedgerService(db).get(transaction_id), TransactionResponse)


@router.post("/transactions/{transaction_id}/reverse", status_code=status.HTTP_201_CREATED)
def reverse_transaction(
    transaction_id: int,
    request: ReverseRequest,
    db: Session = Depends(get_db)
):
    """Offset a transaction with an adjustment entry."""
    result = PointsService(db).reverse_transaction(
        transaction_id, request.reason, request.reversed_by or "system"
    )
    return envelope(_award_payload(result).model_dump())


# ===== ANALYTICS =====

@router.get("/analytics/time-series")
def get_time_series(
    student_id: str = Query(..., min_length=1),
    interval: str = Query("day"),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db)
):
    """Get earned/penalty/net buckets for charts (last 30 days by default)."""
    if start_date is None and end_date is None:
        end_date = utcnow().date()
        start_date = end_date - timedelta(days=DEFAULT_ANALYTICS_DAYS - 1)
    start, end = _date_bounds(start_date, end_date)
    series = LedgerService(db).time_series(student_id, interval, start, end)
    return envelope({
        "student_id": student_id,
        "interval": interval,
        "start": start,
        "end": end,
        "series": series,
    })


@router.get("/analytics/categories")
def get_category_breakdown(
    student_id: str = Query(..., min_length=1),
    time_frame: str = Query("month"),
    db: Session = Depends(get_db)
):
    """Break positive awards down by source and task category."""
    if time_frame != "all" and time_frame not in ANALYTICS_TIME_FRAMES:
        raise ValidationError(
            "time_frame", f"must be one of {', '.join(ANALYTICS_TIME_FRAMES)}, all"
        )
    since: Optional[datetime] = None
    if time_frame != "all":
        since = utcnow() - timedelta(days=ANALYTICS_TIME_FRAMES[time_frame])
    breakdown = LedgerService(db).category_breakdown(student_id, since)
    return envelope({"student_id": student_id, "time_frame": time_frame, **breakdown})
