"""
Academic period service functions.

At most one period is current and at most one is open for registration.
Both switches are applied in a single transaction.
"""

from typing import Any, Dict, Optional
from datetime import datetime
import logging

from sqlalchemy import select, update

from core.utils.datetime import ensure_utc, isoformat
from database.engine import AsyncSessionLocal
from database.models.periods import Period

logger = logging.getLogger(__name__)


def period_to_dict(period: Period) -> Dict[str, Any]:
    return {
        "id": period.id,
        "period": period.period,
        "start_date": isoformat(period.start_date),
        "end_date": isoformat(period.end_date),
        "is_current": period.is_current,
        "is_open": period.is_open,
    }


async def get_current_period_row(session) -> Optional[Period]:
    """Current period inside an existing session."""
    result = await session.execute(
        select(Period).where(Period.is_current.is_(True)).order_by(Period.id.desc()).limit(1)
    )
    return result.scalar_one_or_none()


async def resolve_period_id(session, period_id: Optional[int]) -> Optional[int]:
    """Explicit period id, or the current period's id when omitted."""
    if period_id is not None:
        return period_id
    current = await get_current_period_row(session)
    return current.id if current else None


async def list_periods() -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        result = await session.execute(
            select(Period).order_by(Period.start_date.desc(), Period.id.desc())
        )
        return {"success": True, "periods": [period_to_dict(p) for p in result.scalars().all()]}


async def get_current_period() -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        period = await get_current_period_row(session)
        if not period:
            return {"success": False, "error": "No current period", "status_code": 404}
        return {"success": True, "period": period_to_dict(period)}


async def create_period(name: str, start_date: datetime, end_date: datetime) -> Dict[str, Any]:
    """Create a closed, non-current period."""
    if ensure_utc(start_date) > ensure_utc(end_date):
        return {
            "success": False,
            "error": "Start date must be before end date",
            "status_code": 400,
        }

    async with AsyncSessionLocal() as session:
        period = Period(
            period=name.strip(),
            start_date=ensure_utc(start_date),
            end_date=ensure_utc(end_date),
            is_current=False,
            is_open=False,
        )
        session.add(period)
        await session.commit()
        logger.info(f"Period {period.id} created: {period.period}")
        return {"success": True, "period": period_to_dict(period)}


async def set_current_period(period_id: int) -> Dict[str, Any]:
    """Make a period current. Every period, the target included, is closed."""
    async with AsyncSessionLocal() as session:
        period = await session.get(Period, period_id)
        if not period:
            return {"success": False, "error": "Period not found", "status_code": 404}

        await session.execute(update(Period).values(is_current=False, is_open=False))
        await session.execute(
            update(Period).where(Period.id == period_id).values(is_current=True)
        )
        await session.commit()
        await session.refresh(period)

        logger.info(f"Period {period_id} set as current")
        return {"success": True, "period": period_to_dict(period)}


async def toggle_period_open(period_id: int) -> Dict[str, Any]:
    """Close an open period, or open it after closing every other one."""
    async with AsyncSessionLocal() as session:
        period = await session.get(Period, period_id)
        if not period:
            return {"success": False, "error": "Period not found", "status_code": 404}

        if period.is_open:
            await session.execute(
                update(Period).where(Period.id == period_id).values(is_open=False)
            )
        else:
            await session.execute(update(Period).values(is_open=False))
            await session.execute(
                update(Period).where(Period.id == period_id).values(is_open=True)
            )
        await session.commit()
        await session.refresh(period)

        logger.info(f"Period {period_id} is_open={period.is_open}")
        return {"success": True, "period": period_to_dict(period)}
