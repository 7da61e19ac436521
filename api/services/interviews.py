"""
Interview session service functions.

An interview covers a time range that is split into ``max_students``
contiguous slots of equal length. Interviewers attached at creation are
participants of every slot.
"""

from typing import Any, Dict, List, Optional, Sequence
from datetime import datetime
import logging

from sqlalchemy import select, delete
from sqlalchemy.orm import selectinload

from api.services.periods import get_current_period_row, resolve_period_id
from api.services.slots import lock_interview, masked_slot_to_dict, slot_to_dict
from core.middleware.authorization import is_staff
from core.utils.datetime import ensure_utc, isoformat, split_range
from database.engine import AsyncSessionLocal
from database.models.interviews import Interview, InterviewSlot, InterviewParticipant
from database.models.users import User, UserRole

logger = logging.getLogger(__name__)

PARTICIPANT_ROLES = (UserRole.ADMIN, UserRole.PENGURUS_IOM, UserRole.PEWAWANCARA)

INTERVIEW_LOAD_OPTIONS = (
    selectinload(Interview.owner),
    selectinload(Interview.slots)
    .selectinload(InterviewSlot.participants)
    .selectinload(InterviewParticipant.user),
    selectinload(Interview.slots).selectinload(InterviewSlot.student),
)


def _participants(interview: Interview) -> List[Dict[str, Any]]:
    """Distinct participants across the interview's slots."""
    seen: Dict[int, Dict[str, Any]] = {}
    for slot in interview.slots:
        for p in slot.participants:
            if p.user_id not in seen:
                seen[p.user_id] = {"user_id": p.user_id, "name": p.user.name if p.user else None}
    return list(seen.values())


def interview_to_dict(interview: Interview, viewer: Optional[User] = None) -> Dict[str, Any]:
    """
    Serialize an interview with its slots.

    Students (``viewer`` with the Mahasiswa role) get masked slots.
    """
    masked = viewer is not None and viewer.role == UserRole.MAHASISWA
    return {
        "id": interview.id,
        "period_id": interview.period_id,
        "user_id": interview.user_id,
        "owner_name": interview.owner.name if interview.owner else None,
        "title": interview.title,
        "description": interview.description,
        "start_time": isoformat(interview.start_time),
        "end_time": isoformat(interview.end_time),
        "max_students": interview.max_students,
        "created_at": isoformat(interview.created_at),
        "participants": _participants(interview),
        "participant_ids": list(interview.participant_ids or []),
        "slots": [
            masked_slot_to_dict(s, viewer.id) if masked else slot_to_dict(s)
            for s in interview.slots
        ],
    }


async def _load_interview(session, interview_id: int) -> Optional[Interview]:
    result = await session.execute(
        select(Interview)
        .options(*INTERVIEW_LOAD_OPTIONS)
        .where(Interview.id == interview_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def _add_generated_slots(
    session,
    interview: Interview,
    intervals: Sequence[tuple[datetime, datetime]],
) -> List[InterviewSlot]:
    slots = []
    for number, (slot_start, slot_end) in enumerate(intervals, start=1):
        slot = InterviewSlot(
            interview_id=interview.id,
            period_id=interview.period_id,
            user_id=interview.user_id,
            slot_number=number,
            start_time=slot_start,
            end_time=slot_end,
        )
        session.add(slot)
        slots.append(slot)
    return slots


def _add_participants(session, interview_id: int, slots, user_ids: Sequence[int]) -> None:
    for slot in slots:
        for user_id in user_ids:
            session.add(
                InterviewParticipant(slot_id=slot.id, interview_id=interview_id, user_id=user_id)
            )


async def create_interview(
    owner: User,
    title: str,
    start_time: datetime,
    end_time: datetime,
    max_students: int,
    description: Optional[str] = None,
    participant_ids: Optional[Sequence[int]] = None,
) -> Dict[str, Any]:
    """
    Create an interview in the current period and generate its slots.

    Args:
        owner: Creating IOM staff member
        title: Session title
        start_time: Range start
        end_time: Range end
        max_students: Number of slots to generate
        description: Optional description
        participant_ids: Interviewers attached to every slot

    Returns:
        Dictionary with the interview and its slots
    """
    try:
        intervals = split_range(start_time, end_time, max_students)
    except ValueError as e:
        return {"success": False, "error": str(e), "status_code": 400}

    participant_ids = list(dict.fromkeys(participant_ids or []))

    async with AsyncSessionLocal() as session:
        period = await get_current_period_row(session)
        if not period:
            return {"success": False, "error": "No active period found", "status_code": 400}

        if participant_ids:
            result = await session.execute(
                select(User.id).where(
                    User.id.in_(participant_ids),
                    User.role.in_(PARTICIPANT_ROLES),
                )
            )
            valid = set(result.scalars().all())
            invalid = [uid for uid in participant_ids if uid not in valid]
            if invalid:
                return {
                    "success": False,
                    "error": "Participants must be IOM staff or interviewers",
                    "status_code": 400,
                    "invalid_user_ids": invalid,
                }

        interview = Interview(
            period_id=period.id,
            user_id=owner.id,
            title=title.strip(),
            description=description,
            start_time=ensure_utc(start_time),
            end_time=ensure_utc(end_time),
            max_students=max_students,
            participant_ids=participant_ids,
        )
        session.add(interview)
        await session.flush()

        slots = _add_generated_slots(session, interview, intervals)
        await session.flush()
        _add_participants(session, interview.id, slots, participant_ids)
        await session.commit()

        interview = await _load_interview(session, interview.id)
        logger.info(
            f"Interview {interview.id} created by user {owner.id} with {len(slots)} slots"
        )
        return {"success": True, "interview": interview_to_dict(interview)}


async def list_interviews(user: User, period_id: Optional[int] = None) -> Dict[str, Any]:
    """
    Interviews visible to the caller.

    Staff see any period (default current) in full. Students see the
    current period with masked slots. Other roles are refused.
    """
    if user.role != UserRole.MAHASISWA and not is_staff(user):
        return {"success": False, "error": "You cannot view interviews", "status_code": 403}

    async with AsyncSessionLocal() as session:
        if user.role == UserRole.MAHASISWA:
            current = await get_current_period_row(session)
            period_id = current.id if current else None
        else:
            period_id = await resolve_period_id(session, period_id)

        if period_id is None:
            return {"success": False, "error": "No active period found", "status_code": 404}

        result = await session.execute(
            select(Interview)
            .options(*INTERVIEW_LOAD_OPTIONS)
            .where(Interview.period_id == period_id)
            .order_by(Interview.start_time, Interview.id)
        )
        interviews = result.scalars().all()
        return {
            "success": True,
            "period_id": period_id,
            "interviews": [interview_to_dict(i, viewer=user) for i in interviews],
        }


async def get_interview(interview_id: int) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        interview = await _load_interview(session, interview_id)
        if not interview:
            return {"success": False, "error": "Interview not found", "status_code": 404}
        return {"success": True, "interview": interview_to_dict(interview)}


async def _owned_interview(session, user: User, interview_id: int):
    interview = await lock_interview(session, interview_id)
    if not interview:
        return None, {"success": False, "error": "Interview not found", "status_code": 404}
    if interview.user_id != user.id:
        return None, {
            "success": False,
            "error": "Only the interview owner can change it",
            "status_code": 403,
        }
    return interview, None


async def update_interview(user: User, interview_id: int, updates: Dict[str, Any]) -> Dict[str, Any]:
    """
    Edit title, description or ``max_students``.

    Existing slots are left as they are; use ``regenerate_interview`` to
    rebuild them.
    """
    max_students = updates.get("max_students")
    if max_students is not None and max_students < 1:
        return {"success": False, "error": "max_students must be at least 1", "status_code": 400}

    async with AsyncSessionLocal() as session:
        interview, error = await _owned_interview(session, user, interview_id)
        if error:
            return error

        for field in ("title", "description", "max_students"):
            if field in updates and updates[field] is not None:
                setattr(interview, field, updates[field])
        await session.commit()

        interview = await _load_interview(session, interview_id)
        return {"success": True, "interview": interview_to_dict(interview)}


async def regenerate_interview(
    user: User,
    interview_id: int,
    title: str,
    start_time: datetime,
    end_time: datetime,
    max_students: int,
    description: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Replace an interview's time range and rebuild its slots.

    Old slots go with their bookings and notes. The interview's assigned
    interviewers, plus anyone who joined one of the old slots, are attached
    to every new slot, even if all old slots had been deleted.
    """
    try:
        intervals = split_range(start_time, end_time, max_students)
    except ValueError as e:
        return {"success": False, "error": str(e), "status_code": 400}

    async with AsyncSessionLocal() as session:
        interview, error = await _owned_interview(session, user, interview_id)
        if error:
            return error

        result = await session.execute(
            select(InterviewParticipant.user_id)
            .where(InterviewParticipant.interview_id == interview_id)
            .distinct()
        )
        joined = set(result.scalars().all())
        participant_ids = sorted(set(interview.participant_ids or []) | joined)

        await session.execute(
            delete(InterviewSlot).where(InterviewSlot.interview_id == interview_id)
        )

        interview.title = title.strip()
        interview.description = description
        interview.start_time = ensure_utc(start_time)
        interview.end_time = ensure_utc(end_time)
        interview.max_students = max_students
        interview.participant_ids = participant_ids

        slots = _add_generated_slots(session, interview, intervals)
        await session.flush()
        _add_participants(session, interview_id, slots, participant_ids)
        await session.commit()

        interview = await _load_interview(session, interview_id)
        logger.info(f"Interview {interview_id} regenerated with {len(slots)} slots")
        return {"success": True, "interview": interview_to_dict(interview)}


async def delete_interview(user: User, interview_id: int) -> Dict[str, Any]:
    """Delete an interview; slots, participants and notes cascade."""
    async with AsyncSessionLocal() as session:
        interview, error = await _owned_interview(session, user, interview_id)
        if error:
            return error

        await session.execute(delete(Interview).where(Interview.id == interview_id))
        await session.commit()

        logger.info(f"Interview {interview_id} deleted by user {user.id}")
        return {"success": True, "deleted_id": interview_id}
