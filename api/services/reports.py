"""
Report and statistics service functions.

A student counts as passed in a period when both screenings passed and a
positive amount was approved.
"""

from typing import Any, Dict
import logging

from sqlalchemy import select, func, and_

from api.services.statuses import amount_value
from database.engine import AsyncSessionLocal
from database.models.periods import Period
from database.models.statuses import Status
from database.models.students import Student
from database.models.users import User

logger = logging.getLogger(__name__)

PASSED = and_(
    Status.pass_iom.is_(True),
    Status.pass_ditmawa.is_(True),
    Status.amount > 0,
)


async def period_report(period_id: int) -> Dict[str, Any]:
    """Students with a non-zero approved amount, ordered by name."""
    async with AsyncSessionLocal() as session:
        period = await session.get(Period, period_id)
        if not period:
            return {"success": False, "error": "Period not found", "status_code": 404}

        result = await session.execute(
            select(
                Status.student_id,
                Status.amount,
                Student.nim,
                Student.faculty,
                Student.major,
                User.name,
            )
            .select_from(Status)
            .join(Student, Student.id == Status.student_id)
            .join(User, User.id == Student.id)
            .where(
                Status.period_id == period_id,
                Status.amount.is_not(None),
                Status.amount != 0,
            )
            .order_by(User.name)
        )
        rows = [
            {
                "student_id": row.student_id,
                "nim": row.nim,
                "name": row.name,
                "faculty": row.faculty,
                "major": row.major,
                "amount": amount_value(row.amount),
            }
            for row in result.all()
        ]
        return {
            "success": True,
            "period_id": period_id,
            "period": period.period,
            "students": rows,
            "total_amount": sum(r["amount"] for r in rows),
        }


async def _count_per_period(passed_only: bool) -> Dict[str, Any]:
    join_on = Status.period_id == Period.id
    if passed_only:
        join_on = and_(join_on, PASSED)
    async with AsyncSessionLocal() as session:
        result = await session.execute(
            select(Period.id, Period.period, func.count(Status.student_id))
            .select_from(Period)
            .outerjoin(Status, join_on)
            .group_by(Period.id, Period.period)
            .order_by(Period.id)
        )
        return {
            "success": True,
            "data": [
                {"period_id": pid, "period": name, "total": total}
                for pid, name, total in result.all()
            ],
        }


async def _count_by_faculty(period_id: int, passed_only: bool) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        query = (
            select(Student.faculty, func.count(Status.student_id))
            .select_from(Status)
            .join(Student, Student.id == Status.student_id)
            .where(Status.period_id == period_id)
            .group_by(Student.faculty)
            .order_by(Student.faculty)
        )
        if passed_only:
            query = query.where(PASSED)
        result = await session.execute(query)
        return {
            "success": True,
            "period_id": period_id,
            "data": [{"faculty": faculty, "total": total} for faculty, total in result.all()],
        }


async def students_per_period() -> Dict[str, Any]:
    return await _count_per_period(passed_only=False)


async def passed_per_period() -> Dict[str, Any]:
    return await _count_per_period(passed_only=True)


async def students_by_faculty(period_id: int) -> Dict[str, Any]:
    return await _count_by_faculty(period_id, passed_only=False)


async def passed_by_faculty(period_id: int) -> Dict[str, Any]:
    return await _count_by_faculty(period_id, passed_only=True)
