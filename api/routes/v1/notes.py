"""Interview note endpoints."""

from typing import Any, Dict, Optional, Union

from fastapi import APIRouter, Depends, Path, Query
from pydantic import BaseModel

from api.dependencies import raise_for_result
from core.middleware.authorization import Permission, require_permission
from api.services import notes as note_service
from database.models.users import User

router = APIRouter(prefix="/notes", tags=["notes"])


class SaveNoteRequest(BaseModel):
    text: Union[Dict[str, Any], str]


@router.get(
    "",
    summary="List Notes",
    dependencies=[Depends(require_permission(Permission.NOTES_READ))],
)
async def list_notes(
    period_id: Optional[int] = Query(None, description="Defaults to the current period"),
):
    result = await note_service.list_notes(period_id)
    raise_for_result(result)
    return result


@router.get(
    "/{student_id}/{period_id}",
    summary="Get Note",
    dependencies=[Depends(require_permission(Permission.NOTES_READ))],
)
async def get_note(student_id: int = Path(...), period_id: int = Path(...)):
    result = await note_service.get_note(student_id, period_id)
    raise_for_result(result)
    return result["note"]


@router.put("/{student_id}/{period_id}", summary="Save Note")
async def save_note(
    data: SaveNoteRequest,
    student_id: int = Path(...),
    period_id: int = Path(...),
    current_user: User = Depends(require_permission(Permission.NOTES_WRITE)),
):
    result = await note_service.save_note(
        student_id, period_id, data.text, written_by=current_user.id
    )
    raise_for_result(result)
    return result
