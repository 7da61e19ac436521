"""
Student document endpoints.

Uploads go to object storage; responses carry short-lived presigned URLs.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Path, Query, UploadFile

from api.dependencies import require_active_user, raise_for_result
from api.services import files as file_service
from api.services.periods import get_current_period
from core.middleware.authorization import (
    AuthorizationError,
    Permission,
    has_permission,
    require_permission,
)
from database.models.files import FileType
from database.models.users import User

router = APIRouter(prefix="/files", tags=["files"])


@router.get("/types", summary="List Document Types")
async def list_file_types():
    return file_service.list_file_types()


@router.post("", status_code=201, summary="Upload Document")
async def upload_file(
    file_type: FileType = Form(..., description="Document type"),
    file: UploadFile = File(...),
    current_user: User = Depends(require_permission(Permission.FILE_UPLOAD)),
):
    """Upload a document, replacing the caller's previous one of the same type."""
    content = await file.read()
    result = await file_service.upload_file(
        student_id=current_user.id,
        file_type=file_type,
        content=content,
        filename=file.filename,
        content_type=file.content_type,
    )
    raise_for_result(result)
    return result


@router.get("/me", summary="List Own Documents")
async def list_my_files(
    current_user: User = Depends(require_permission(Permission.FILE_UPLOAD)),
):
    return await file_service.list_student_files(current_user.id)


@router.get(
    "/student/{student_id}",
    summary="List Student Documents",
    dependencies=[Depends(require_permission(Permission.FILE_READ))],
)
async def list_student_files(student_id: int = Path(..., description="Student ID")):
    return await file_service.list_student_files(student_id)


@router.get(
    "",
    summary="List Documents By Period",
    description="Every registered student of a period with their documents.",
    dependencies=[Depends(require_permission(Permission.FILE_READ_ALL))],
)
async def list_period_files(
    period_id: Optional[int] = Query(None, description="Defaults to the current period"),
):
    if period_id is None:
        current = await get_current_period()
        raise_for_result(current)
        period_id = current["period"]["id"]
    return await file_service.list_period_files(period_id)


@router.delete("/{file_id}", summary="Delete Document")
async def delete_file(
    file_id: int = Path(..., description="File ID"),
    current_user: User = Depends(require_active_user),
):
    """The owning student or IOM staff may delete a document."""
    found = await file_service.get_file(file_id)
    raise_for_result(found)

    owner_id = found["file"]["student_id"]
    if owner_id != current_user.id and not has_permission(current_user, Permission.FILE_DELETE):
        raise AuthorizationError("You can only delete your own documents")

    result = await file_service.delete_file(file_id)
    raise_for_result(result)
    return result
