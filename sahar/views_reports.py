# sahar/views_reports.py
from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query

from .auth import ManagerDep
from .db import BackendDep
from .reports import FINANCE_RANGES, PERIODS, STOCK_SORTS, ReportService

router = APIRouter(prefix="/reports", tags=["reports"])


def _check(value: str, allowed: tuple, label: str) -> str:
    if value not in allowed:
        raise HTTPException(status_code=400, detail=f"Unknown {label} {value}")
    return value


@router.get("/dashboard")
def report_dashboard(backend: BackendDep, ctx: ManagerDep, period: str = Query("today")):
    return ReportService(backend).dashboard(_check(period, PERIODS, "period"))


@router.get("/best-sellers")
def report_best_sellers(backend: BackendDep, ctx: ManagerDep, period: str = Query("week")):
    return ReportService(backend).best_sellers(_check(period, PERIODS, "period"))


@router.get("/finance")
def report_finance(backend: BackendDep, ctx: ManagerDep, time_range: str = Query("monthly")):
    return ReportService(backend).finance(_check(time_range, FINANCE_RANGES, "range"))


@router.get("/stock-usage")
def report_stock_usage(backend: BackendDep, ctx: ManagerDep, sort_by: str = Query("total_used"), search: str = ""):
    return ReportService(backend).stock_usage(_check(sort_by, STOCK_SORTS, "sort"), search)
