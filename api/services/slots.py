"""
Interview slot service functions.

Covers slot listing, creation, editing and deletion (with renumbering), plus
student booking/cancellation and interviewer participation.

Invariants:
- a student holds at most one booked slot per period
  (``uq_slot_period_student``; a lost race surfaces as 409)
- slot numbers inside one interview stay contiguous ``1..n``
"""

from typing import Any, Dict, List, Optional
from datetime import datetime
import json
import logging

from sqlalchemy import select, delete, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from api.services.notifications import add_notification
from api.services.periods import get_current_period_row, resolve_period_id
from core.middleware.authorization import is_iom, is_staff
from core.utils.datetime import now, ensure_utc, isoformat
from database.engine import AsyncSessionLocal
from database.models.interviews import (
    Interview,
    InterviewSlot,
    InterviewParticipant,
    InterviewNote,
)
from database.models.statuses import Status
from database.models.students import Student
from database.models.users import User, UserRole

logger = logging.getLogger(__name__)

NOTE_TEMPLATE = {
    "interviewer_name": "",
    "interviewer_phone": "",
    "student_name": "",
    "student_nim": "",
}

SLOT_LOAD_OPTIONS = (
    selectinload(InterviewSlot.participants).selectinload(InterviewParticipant.user),
    selectinload(InterviewSlot.student),
    selectinload(InterviewSlot.interview),
)


def slot_to_dict(slot: InterviewSlot) -> Dict[str, Any]:
    """Full slot view for staff."""
    student = None
    if slot.student is not None:
        student = {
            "id": slot.student.id,
            "nim": slot.student.nim,
            "name": slot.student.user.name if slot.student.user else None,
        }
    return {
        "id": slot.id,
        "interview_id": slot.interview_id,
        "period_id": slot.period_id,
        "user_id": slot.user_id,
        "slot_number": slot.slot_number,
        "title": slot.title,
        "description": slot.description,
        "start_time": isoformat(slot.start_time),
        "end_time": isoformat(slot.end_time),
        "is_booked": slot.student_id is not None,
        "booked_at": isoformat(slot.booked_at),
        "student": student,
        "participants": [
            {"user_id": p.user_id, "name": p.user.name if p.user else None}
            for p in slot.participants
        ],
    }


def masked_slot_to_dict(slot: InterviewSlot, viewer_id: int) -> Dict[str, Any]:
    """Slot view for students: booking state without anyone else's identity."""
    return {
        "id": slot.id,
        "interview_id": slot.interview_id,
        "period_id": slot.period_id,
        "slot_number": slot.slot_number,
        "title": slot.title,
        "description": slot.description,
        "start_time": isoformat(slot.start_time),
        "end_time": isoformat(slot.end_time),
        "is_booked": slot.student_id is not None,
        "is_mine": slot.student_id == viewer_id,
    }


def owns_slot(user: User, slot: InterviewSlot) -> bool:
    """Slot owner, or owner of the interview the slot belongs to."""
    if slot.user_id == user.id:
        return True
    return slot.interview is not None and slot.interview.user_id == user.id


def _check_range(start_time: datetime, end_time: datetime) -> Optional[Dict[str, Any]]:
    if ensure_utc(end_time) <= ensure_utc(start_time):
        return {"success": False, "error": "End time must be after start time", "status_code": 400}
    return None


async def _load_slot(session, slot_id: int, for_update: bool = False) -> Optional[InterviewSlot]:
    query = select(InterviewSlot).options(*SLOT_LOAD_OPTIONS).where(InterviewSlot.id == slot_id)
    if for_update:
        query = query.with_for_update(of=InterviewSlot)
    result = await session.execute(query.execution_options(populate_existing=True))
    return result.scalar_one_or_none()


async def lock_interview(session, interview_id: int) -> Optional[Interview]:
    """
    Row-lock an interview for the rest of the transaction.

    Slot numbering (append, delete and renumber) reads then rewrites every
    slot of the interview, so these operations must run one at a time per
    interview.
    """
    result = await session.execute(
        select(Interview).where(Interview.id == interview_id).with_for_update()
    )
    return result.scalar_one_or_none()


async def renumber_slots(session, interview_id: int) -> List[InterviewSlot]:
    """
    Renumber an interview's slots to ``1..n`` keeping their order.

    Runs inside the caller's transaction. Numbers only ever move down into
    freed positions, so flushing after each change never collides with
    ``uq_slot_interview_number``.
    """
    result = await session.execute(
        select(InterviewSlot)
        .options(*SLOT_LOAD_OPTIONS)
        .where(InterviewSlot.interview_id == interview_id)
        .order_by(InterviewSlot.slot_number)
    )
    slots = list(result.scalars().all())
    for position, slot in enumerate(slots, start=1):
        if slot.slot_number != position:
            slot.slot_number = position
            await session.flush()
    return slots


async def list_slots(user: User, period_id: Optional[int] = None) -> Dict[str, Any]:
    """
    Slots of a period.

    Staff may pick any period (default current); students only ever see
    the current period, masked.
    """
    async with AsyncSessionLocal() as session:
        if user.role == UserRole.MAHASISWA:
            current = await get_current_period_row(session)
            period_id = current.id if current else None
        else:
            period_id = await resolve_period_id(session, period_id)

        if period_id is None:
            return {"success": False, "error": "No current period", "status_code": 404}

        result = await session.execute(
            select(InterviewSlot)
            .options(*SLOT_LOAD_OPTIONS)
            .where(InterviewSlot.period_id == period_id)
            .order_by(InterviewSlot.start_time, InterviewSlot.id)
        )
        slots = result.scalars().all()

        if user.role == UserRole.MAHASISWA:
            data = [masked_slot_to_dict(s, user.id) for s in slots]
        else:
            data = [slot_to_dict(s) for s in slots]
        return {"success": True, "period_id": period_id, "slots": data}


async def create_slot(
    user: User,
    start_time: datetime,
    end_time: datetime,
    interview_id: Optional[int] = None,
    title: Optional[str] = None,
    description: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Create a slot.

    With ``interview_id`` the slot is appended as number ``n + 1`` and gets
    the interview's participants; otherwise it is a standalone slot in the
    current period.
    """
    invalid = _check_range(start_time, end_time)
    if invalid:
        return invalid

    async with AsyncSessionLocal() as session:
        current = await get_current_period_row(session)
        if not current:
            return {"success": False, "error": "No active period found", "status_code": 400}

        slot = InterviewSlot(
            user_id=user.id,
            title=title,
            description=description,
            start_time=ensure_utc(start_time),
            end_time=ensure_utc(end_time),
        )

        participant_ids: List[int] = []
        if interview_id is not None:
            interview = await lock_interview(session, interview_id)
            if not interview:
                return {"success": False, "error": "Interview not found", "status_code": 404}
            if interview.user_id != user.id:
                return {
                    "success": False,
                    "error": "Only the interview owner can add slots",
                    "status_code": 403,
                }

            highest = await session.execute(
                select(func.max(InterviewSlot.slot_number)).where(
                    InterviewSlot.interview_id == interview_id
                )
            )
            slot.interview_id = interview_id
            slot.period_id = interview.period_id
            slot.slot_number = (highest.scalar() or 0) + 1

            existing = await session.execute(
                select(InterviewParticipant.user_id)
                .where(InterviewParticipant.interview_id == interview_id)
                .distinct()
            )
            joined = set(existing.scalars().all())
            participant_ids = sorted(set(interview.participant_ids or []) | joined)
        else:
            slot.period_id = current.id
            slot.slot_number = 1

        session.add(slot)
        await session.flush()
        for participant_id in participant_ids:
            session.add(
                InterviewParticipant(
                    slot_id=slot.id, interview_id=interview_id, user_id=participant_id
                )
            )
        await session.commit()

        slot = await _load_slot(session, slot.id)
        logger.info(f"Slot {slot.id} created by user {user.id} (interview {interview_id})")
        return {"success": True, "slot": slot_to_dict(slot)}


async def get_slot(user: User, slot_id: int) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        slot = await _load_slot(session, slot_id)
        if not slot:
            return {"success": False, "error": "Slot not found", "status_code": 404}

        if not is_staff(user) and slot.student_id != user.id:
            return {"success": False, "error": "You cannot view this slot", "status_code": 403}
        return {"success": True, "slot": slot_to_dict(slot)}


async def update_slot(user: User, slot_id: int, updates: Dict[str, Any]) -> Dict[str, Any]:
    """Edit times or labels of a slot; the result must keep ``end > start``."""
    async with AsyncSessionLocal() as session:
        slot = await _load_slot(session, slot_id)
        if not slot:
            return {"success": False, "error": "Slot not found", "status_code": 404}
        if not owns_slot(user, slot):
            return {"success": False, "error": "Only the slot owner can edit it", "status_code": 403}

        start_time = updates.get("start_time") or slot.start_time
        end_time = updates.get("end_time") or slot.end_time
        invalid = _check_range(start_time, end_time)
        if invalid:
            return invalid

        slot.start_time = ensure_utc(start_time)
        slot.end_time = ensure_utc(end_time)
        for field in ("title", "description"):
            if field in updates:
                setattr(slot, field, updates[field])
        await session.commit()

        return {"success": True, "slot": slot_to_dict(slot)}


async def delete_slot(user: User, slot_id: int) -> Dict[str, Any]:
    """
    Delete a slot and renumber the rest of its interview.

    Participants and the note go with the slot; both steps share one
    transaction.
    """
    async with AsyncSessionLocal() as session:
        slot = await _load_slot(session, slot_id)
        if not slot:
            return {"success": False, "error": "Slot not found", "status_code": 404}
        if not owns_slot(user, slot):
            return {"success": False, "error": "Only the slot owner can delete it", "status_code": 403}

        interview_id = slot.interview_id
        if interview_id is not None:
            await lock_interview(session, interview_id)
        await session.delete(slot)
        await session.flush()

        remaining: List[InterviewSlot] = []
        if interview_id is not None:
            remaining = await renumber_slots(session, interview_id)
        await session.commit()

        logger.info(f"Slot {slot_id} deleted by user {user.id}")
        return {
            "success": True,
            "deleted_id": slot_id,
            "interview_id": interview_id,
            "slots": [slot_to_dict(s) for s in remaining],
        }


async def book_slot(student_id: int, slot_id: int) -> Dict[str, Any]:
    """
    Book a slot for a student.

    Returns:
        Dictionary with the booked slot; on a conflict with an earlier
        booking in the same period, ``existing_slot_id`` names it
    """
    async with AsyncSessionLocal() as session:
        slot = await _load_slot(session, slot_id, for_update=True)
        if not slot:
            return {"success": False, "error": "Slot not found", "status_code": 404}
        if slot.student_id is not None:
            return {"success": False, "error": "Slot already booked", "status_code": 409}

        student = await session.get(Student, student_id)
        if not student:
            return {"success": False, "error": "Student profile not found", "status_code": 400}
        if not await session.get(Status, (student_id, slot.period_id)):
            return {
                "success": False,
                "error": "You are not registered for this period",
                "status_code": 400,
            }

        existing = await session.execute(
            select(InterviewSlot.id).where(
                InterviewSlot.period_id == slot.period_id,
                InterviewSlot.student_id == student_id,
            )
        )
        existing_slot_id = existing.scalar_one_or_none()
        if existing_slot_id is not None:
            return {
                "success": False,
                "error": "You already have a booked slot in this period",
                "status_code": 409,
                "existing_slot_id": existing_slot_id,
            }

        slot.student_id = student_id
        slot.booked_at = now()
        session.add(
            InterviewNote(
                slot_id=slot.id,
                student_id=student_id,
                text=json.dumps(NOTE_TEMPLATE),
            )
        )
        add_notification(
            session,
            student_id,
            "Interview booked",
            f"Your interview is scheduled for {isoformat(slot.start_time)}.",
        )

        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            logger.warning(f"Booking race on slot {slot_id} for student {student_id}")
            return {"success": False, "error": "Slot already booked", "status_code": 409}

        slot = await _load_slot(session, slot_id)
        logger.info(f"Student {student_id} booked slot {slot_id}")
        return {"success": True, "slot": slot_to_dict(slot)}


async def cancel_booking(user: User, slot_id: int) -> Dict[str, Any]:
    """
    Cancel the booking on a slot.

    Students may cancel their own booking; IOM staff may cancel bookings on
    slots they own (directly or through the interview).
    """
    if user.role != UserRole.MAHASISWA and not is_iom(user):
        return {"success": False, "error": "You cannot cancel bookings", "status_code": 403}

    async with AsyncSessionLocal() as session:
        slot = await _load_slot(session, slot_id, for_update=True)
        if not slot:
            return {"success": False, "error": "Slot not found", "status_code": 404}
        if slot.student_id is None:
            return {"success": False, "error": "Slot is not booked", "status_code": 400}

        if user.role == UserRole.MAHASISWA:
            if slot.student_id != user.id:
                return {"success": False, "error": "You can only cancel your own booking", "status_code": 403}
        elif not owns_slot(user, slot):
            return {"success": False, "error": "Only the slot owner can cancel bookings", "status_code": 403}

        student_id = slot.student_id
        await session.execute(delete(InterviewNote).where(InterviewNote.slot_id == slot.id))
        slot.student_id = None
        slot.booked_at = None
        add_notification(
            session,
            student_id,
            "Interview booking cancelled",
            f"Your interview on {isoformat(slot.start_time)} has been cancelled.",
        )
        await session.commit()

        slot = await _load_slot(session, slot_id)
        logger.info(f"Booking on slot {slot_id} cancelled by user {user.id}")
        return {"success": True, "slot": slot_to_dict(slot)}


async def join_slot(user: User, slot_id: int) -> Dict[str, Any]:
    """
    Add the caller to a slot's participants.

    Joining a slot of an interview also assigns the caller to the interview,
    so slots generated or appended later include them.
    """
    async with AsyncSessionLocal() as session:
        slot = await session.get(InterviewSlot, slot_id)
        if not slot:
            return {"success": False, "error": "Slot not found", "status_code": 404}

        existing = await session.execute(
            select(InterviewParticipant.id).where(
                InterviewParticipant.slot_id == slot_id,
                InterviewParticipant.user_id == user.id,
            )
        )
        if existing.scalar_one_or_none():
            return {"success": False, "error": "Already joined this slot", "status_code": 409}

        if slot.interview_id is not None:
            interview = await lock_interview(session, slot.interview_id)
            if user.id not in interview.participant_ids:
                interview.participant_ids = sorted([*interview.participant_ids, user.id])

        participant = InterviewParticipant(
            slot_id=slot_id, interview_id=slot.interview_id, user_id=user.id
        )
        session.add(participant)
        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            return {"success": False, "error": "Already joined this slot", "status_code": 409}

        logger.info(f"User {user.id} joined slot {slot_id}")
        return {"success": True, "participant_id": participant.id, "slot_id": slot_id}


async def leave_slots(
    user: User,
    slot_id: Optional[int] = None,
    interview_id: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Remove the caller's participations, optionally narrowed to a slot or interview.

    The caller stays assigned to an interview while they still attend one of
    its slots.
    """
    async with AsyncSessionLocal() as session:
        conditions = [InterviewParticipant.user_id == user.id]
        if slot_id is not None:
            conditions.append(InterviewParticipant.slot_id == slot_id)
        if interview_id is not None:
            conditions.append(InterviewParticipant.interview_id == interview_id)

        touched = await session.execute(
            select(InterviewParticipant.interview_id)
            .where(*conditions, InterviewParticipant.interview_id.is_not(None))
            .distinct()
        )
        touched_ids = list(touched.scalars().all())
        if interview_id is not None and interview_id not in touched_ids:
            touched_ids.append(interview_id)

        result = await session.execute(delete(InterviewParticipant).where(*conditions))

        for touched_id in sorted(touched_ids):
            interview = await lock_interview(session, touched_id)
            if interview is None or user.id not in interview.participant_ids:
                continue
            still_attending = await session.execute(
                select(InterviewParticipant.id).where(
                    InterviewParticipant.interview_id == touched_id,
                    InterviewParticipant.user_id == user.id,
                ).limit(1)
            )
            if still_attending.scalar_one_or_none() is None:
                interview.participant_ids = [
                    uid for uid in interview.participant_ids if uid != user.id
                ]

        await session.commit()
        return {"success": True, "removed": result.rowcount or 0}
