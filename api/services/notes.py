"""Interview note (form) service functions."""

from typing import Any, Dict, Optional, Union
import json
import logging

from sqlalchemy import select

from api.services.periods import resolve_period_id
from core.utils.datetime import isoformat
from database.engine import AsyncSessionLocal
from database.models.interviews import InterviewNote, InterviewSlot
from database.models.students import Student
from database.models.users import User

logger = logging.getLogger(__name__)


def parse_note_text(text: str) -> Union[Dict[str, Any], str]:
    """Stored notes are JSON objects; older free-text notes come back as-is."""
    try:
        value = json.loads(text)
    except (TypeError, ValueError):
        return text
    return value if isinstance(value, dict) else text


def _note_row_to_dict(note: InterviewNote, slot: InterviewSlot, nim: str, name: str) -> Dict[str, Any]:
    return {
        "id": note.id,
        "slot_id": slot.id,
        "interview_id": slot.interview_id,
        "period_id": slot.period_id,
        "student_id": note.student_id,
        "nim": nim,
        "name": name,
        "user_id": note.user_id,
        "text": parse_note_text(note.text),
        "updated_at": isoformat(note.updated_at),
    }


def _note_query():
    return (
        select(InterviewNote, InterviewSlot, Student.nim, User.name)
        .join(InterviewSlot, InterviewSlot.id == InterviewNote.slot_id)
        .join(Student, Student.id == InterviewNote.student_id)
        .join(User, User.id == Student.id)
    )


async def list_notes(period_id: Optional[int] = None) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        period_id = await resolve_period_id(session, period_id)
        if period_id is None:
            return {"success": False, "error": "No current period", "status_code": 404}

        result = await session.execute(
            _note_query()
            .where(InterviewSlot.period_id == period_id)
            .order_by(User.name)
        )
        return {
            "success": True,
            "period_id": period_id,
            "notes": [_note_row_to_dict(*row) for row in result.unique().all()],
        }


async def get_note(student_id: int, period_id: int) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        result = await session.execute(
            _note_query().where(
                InterviewNote.student_id == student_id,
                InterviewSlot.period_id == period_id,
            )
        )
        row = result.unique().first()
        if not row:
            return {"success": False, "error": "Note not found", "status_code": 404}
        return {"success": True, "note": _note_row_to_dict(*row)}


async def save_note(
    student_id: int,
    period_id: int,
    text: Union[Dict[str, Any], str],
    written_by: int,
) -> Dict[str, Any]:
    """
    Save the note of a student's booking in a period.

    Args:
        student_id: Booked student
        period_id: Period of the booking
        text: Form fields (dict) or free text
        written_by: Interviewer saving the note

    Returns:
        Dictionary with the saved note
    """
    serialized = text if isinstance(text, str) else json.dumps(text)

    async with AsyncSessionLocal() as session:
        result = await session.execute(
            select(InterviewSlot).where(
                InterviewSlot.student_id == student_id,
                InterviewSlot.period_id == period_id,
            )
        )
        slot = result.scalar_one_or_none()
        if not slot:
            return {
                "success": False,
                "error": "Student has no booked interview in this period",
                "status_code": 404,
            }

        note_result = await session.execute(
            select(InterviewNote).where(InterviewNote.slot_id == slot.id)
        )
        note = note_result.scalar_one_or_none()
        if note is None:
            note = InterviewNote(slot_id=slot.id, student_id=student_id)
            session.add(note)

        note.text = serialized
        note.user_id = written_by
        await session.commit()

        logger.info(f"Note for student {student_id} in period {period_id} saved by {written_by}")
        return {"success": True, "note_id": note.id, "text": parse_note_text(note.text)}
