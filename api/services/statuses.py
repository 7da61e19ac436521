"""
Registration status service functions.

A Status row records one student's screening outcome, interview result and
approved amount for one period.
"""

from typing import Any, Dict, List, Optional
from decimal import Decimal
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from api.services.periods import resolve_period_id
from database.engine import AsyncSessionLocal
from database.models.periods import Period
from database.models.students import Student
from database.models.statuses import Status
from database.models.users import User

logger = logging.getLogger(__name__)


def amount_value(amount: Optional[Decimal]) -> Optional[float]:
    return float(amount) if amount is not None else None


def status_to_dict(status: Status) -> Dict[str, Any]:
    return {
        "student_id": status.student_id,
        "period_id": status.period_id,
        "pass_ditmawa": status.pass_ditmawa,
        "pass_iom": status.pass_iom,
        "pass_interview": status.pass_interview,
        "amount": amount_value(status.amount),
    }


async def register_for_period(student_id: int, period_id: Optional[int] = None) -> Dict[str, Any]:
    """
    Register a student for a period.

    Args:
        student_id: Caller's user id
        period_id: Target period, defaults to the current one

    Returns:
        Dictionary with the new status
    """
    async with AsyncSessionLocal() as session:
        period_id = await resolve_period_id(session, period_id)
        period = await session.get(Period, period_id) if period_id is not None else None
        if not period:
            return {"success": False, "error": "Period not found", "status_code": 404}
        if not period.is_open:
            return {"success": False, "error": "Registration for this period is closed", "status_code": 400}

        student = await session.get(Student, student_id)
        if not student:
            return {
                "success": False,
                "error": "Complete your student profile before registering",
                "status_code": 400,
            }

        if await session.get(Status, (student_id, period.id)):
            return {"success": False, "error": "Already registered for this period", "status_code": 409}

        status = Status(
            student_id=student_id,
            period_id=period.id,
            pass_ditmawa=False,
            pass_iom=False,
            pass_interview=False,
            amount=None,
        )
        session.add(status)
        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            return {"success": False, "error": "Already registered for this period", "status_code": 409}

        logger.info(f"Student {student_id} registered for period {period.id}")
        return {"success": True, "status": status_to_dict(status)}


async def check_registration(student_id: int, period_id: Optional[int] = None) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        period_id = await resolve_period_id(session, period_id)
        if period_id is None:
            return {"success": True, "exists": False, "period_id": None}
        status = await session.get(Status, (student_id, period_id))
        return {"success": True, "exists": status is not None, "period_id": period_id}


async def get_status(student_id: int, period_id: int) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        status = await session.get(Status, (student_id, period_id))
        if not status:
            return {"success": False, "error": "Status not found", "status_code": 404}
        return {"success": True, "status": status_to_dict(status)}


async def update_screening(period_id: int, updates: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Apply screening results for many students at once.

    Every student must already be registered in the period; otherwise
    nothing is written.
    """
    async with AsyncSessionLocal() as session:
        student_ids = [u["student_id"] for u in updates]
        result = await session.execute(
            select(Status).where(
                Status.period_id == period_id,
                Status.student_id.in_(student_ids),
            )
        )
        statuses = {s.student_id: s for s in result.scalars().unique().all()}

        missing = sorted(set(student_ids) - set(statuses))
        if missing:
            return {
                "success": False,
                "error": "Some students are not registered in this period",
                "status_code": 404,
                "missing_student_ids": missing,
            }

        for item in updates:
            status = statuses[item["student_id"]]
            if item.get("pass_ditmawa") is not None:
                status.pass_ditmawa = item["pass_ditmawa"]
            if item.get("pass_iom") is not None:
                status.pass_iom = item["pass_iom"]

        await session.commit()
        logger.info(f"Screening updated for {len(updates)} students in period {period_id}")
        return {
            "success": True,
            "updated": len(updates),
            "statuses": [status_to_dict(statuses[sid]) for sid in student_ids],
        }


async def update_result(
    student_id: int,
    period_id: int,
    pass_interview: Optional[bool] = None,
    amount: Optional[Decimal] = None,
) -> Dict[str, Any]:
    """Record the interview outcome and the approved amount."""
    if amount is not None and amount < 0:
        return {"success": False, "error": "Amount must not be negative", "status_code": 400}

    async with AsyncSessionLocal() as session:
        status = await session.get(Status, (student_id, period_id))
        if not status:
            return {"success": False, "error": "Status not found", "status_code": 404}

        if pass_interview is not None:
            status.pass_interview = pass_interview
        if amount is not None:
            status.amount = amount
        await session.commit()

        return {"success": True, "status": status_to_dict(status)}


async def list_scoring_candidates(period_id: Optional[int] = None) -> Dict[str, Any]:
    """Students who passed IOM screening, for the scoring screen."""
    async with AsyncSessionLocal() as session:
        period_id = await resolve_period_id(session, period_id)
        if period_id is None:
            return {"success": False, "error": "No current period", "status_code": 404}

        result = await session.execute(
            select(Status, Student.nim, Student.faculty, User.name)
            .join(Student, Student.id == Status.student_id)
            .join(User, User.id == Student.id)
            .where(Status.period_id == period_id, Status.pass_iom.is_(True))
            .order_by(User.name)
        )
        candidates = []
        for status, nim, faculty, name in result.unique().all():
            candidates.append({
                **status_to_dict(status),
                "nim": nim,
                "faculty": faculty,
                "name": name,
            })
        return {"success": True, "period_id": period_id, "candidates": candidates}
