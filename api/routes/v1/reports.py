"""Report and statistics endpoints."""

from fastapi import APIRouter, Depends, Path

from api.dependencies import raise_for_result
from core.middleware.authorization import Permission, require_permission
from api.services import reports as report_service

reports_router = APIRouter(
    prefix="/reports",
    tags=["reports"],
    dependencies=[Depends(require_permission(Permission.REPORT_READ))],
)
statistics_router = APIRouter(
    prefix="/statistics",
    tags=["reports"],
    dependencies=[Depends(require_permission(Permission.STATISTICS_READ))],
)


@reports_router.get("/{period_id}", summary="Period Report")
async def period_report(period_id: int = Path(..., description="Period ID")):
    """Approved amounts per student, with the period total."""
    result = await report_service.period_report(period_id)
    raise_for_result(result)
    return result


@statistics_router.get("/students-per-period", summary="Registered Students Per Period")
async def students_per_period():
    return await report_service.students_per_period()


@statistics_router.get("/students-by-faculty/{period_id}", summary="Registered Students By Faculty")
async def students_by_faculty(period_id: int = Path(...)):
    return await report_service.students_by_faculty(period_id)


@statistics_router.get("/passed-per-period", summary="Passed Students Per Period")
async def passed_per_period():
    return await report_service.passed_per_period()


@statistics_router.get("/passed-by-faculty/{period_id}", summary="Passed Students By Faculty")
async def passed_by_faculty(period_id: int = Path(...)):
    return await report_service.passed_by_faculty(period_id)
