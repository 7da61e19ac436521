"""
Student document service functions.

Documents live in object storage under
``{uuid4}-{student_id}-{file_type}.{ext}``; the ``files`` table keeps one row
per student and document type.
"""

from typing import Any, Dict, List, Optional
import uuid
import logging

from sqlalchemy import select

from core.config import settings
from core.storage.s3 import get_storage
from core.utils.datetime import now, isoformat
from core.utils.validators import file_extension, sanitize_filename
from database.engine import AsyncSessionLocal
from database.models.files import FileType, StudentFile
from database.models.statuses import Status
from database.models.students import Student
from database.models.users import User

logger = logging.getLogger(__name__)


def list_file_types() -> List[Dict[str, str]]:
    return [{"key": t.value, "title": t.title} for t in FileType]


def build_file_key(student_id: int, file_type: FileType, filename: Optional[str]) -> str:
    """Object key for a new upload."""
    return f"{uuid.uuid4()}-{student_id}-{file_type.value}.{file_extension(filename)}"


async def _file_to_dict(record: StudentFile, with_url: bool = True) -> Dict[str, Any]:
    data = {
        "id": record.id,
        "student_id": record.student_id,
        "file_type": record.file_type.value,
        "title": record.file_type.title,
        "file_key": record.file_key,
        "original_name": record.original_name,
        "content_type": record.content_type,
        "size": record.size,
        "uploaded_at": isoformat(record.uploaded_at),
    }
    if with_url:
        data["url"] = await get_storage().get_presigned_url(record.file_key)
    return data


async def upload_file(
    student_id: int,
    file_type: FileType,
    content: bytes,
    filename: Optional[str] = None,
    content_type: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Store a document for a student, replacing any earlier one of the same type.

    Args:
        student_id: Owning student
        file_type: Document type
        content: Raw file bytes
        filename: Name of the uploaded file
        content_type: MIME type reported by the client

    Returns:
        Dictionary with the stored file and a presigned URL
    """
    if not content:
        return {"success": False, "error": "File is empty", "status_code": 400}
    if len(content) > settings.max_upload_size_bytes:
        return {
            "success": False,
            "error": f"File exceeds the {settings.max_upload_size_mb} MB limit",
            "status_code": 400,
        }

    async with AsyncSessionLocal() as session:
        student = await session.get(Student, student_id)
        if not student:
            return {
                "success": False,
                "error": "Complete your student profile before uploading",
                "status_code": 400,
            }

        storage = get_storage()
        key = build_file_key(student_id, file_type, filename)
        await storage.upload(content, key, content_type=content_type)

        try:
            result = await session.execute(
                select(StudentFile).where(
                    StudentFile.student_id == student_id,
                    StudentFile.file_type == file_type,
                )
            )
            record = result.scalar_one_or_none()
            old_key = record.file_key if record else None

            if record is None:
                record = StudentFile(student_id=student_id, file_type=file_type)
                session.add(record)

            record.file_key = key
            record.original_name = sanitize_filename(filename) if filename else None
            record.content_type = content_type
            record.size = len(content)
            record.uploaded_at = now()
            await session.commit()
        except Exception:
            # The row was not saved, so the new object has no owner
            await session.rollback()
            await storage.delete(key)
            logger.warning(f"Removed orphaned upload {key} after a failed save")
            raise

        if old_key:
            await storage.delete(old_key)
            logger.info(f"Replaced {file_type.value} for student {student_id}")
        else:
            logger.info(f"Uploaded {file_type.value} for student {student_id}")

        return {
            "success": True,
            "replaced": old_key is not None,
            "file": await _file_to_dict(record),
        }


async def list_student_files(student_id: int) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        result = await session.execute(
            select(StudentFile)
            .where(StudentFile.student_id == student_id)
            .order_by(StudentFile.file_type)
        )
        files = [await _file_to_dict(f) for f in result.scalars().all()]
        return {"success": True, "student_id": student_id, "files": files}


async def list_period_files(period_id: int) -> Dict[str, Any]:
    """Every registered student of a period with their documents."""
    async with AsyncSessionLocal() as session:
        result = await session.execute(
            select(Status.student_id, Student.nim, User.name)
            .join(Student, Student.id == Status.student_id)
            .join(User, User.id == Student.id)
            .where(Status.period_id == period_id)
            .order_by(User.name)
        )
        rows = result.all()

        student_ids = [row.student_id for row in rows]
        files_by_student: Dict[int, List[Dict[str, Any]]] = {sid: [] for sid in student_ids}
        if student_ids:
            files_result = await session.execute(
                select(StudentFile)
                .where(StudentFile.student_id.in_(student_ids))
                .order_by(StudentFile.file_type)
            )
            for record in files_result.scalars().all():
                files_by_student[record.student_id].append(await _file_to_dict(record))

        return {
            "success": True,
            "period_id": period_id,
            "students": [
                {
                    "student_id": row.student_id,
                    "nim": row.nim,
                    "name": row.name,
                    "files": files_by_student[row.student_id],
                }
                for row in rows
            ],
        }


async def get_file(file_id: int) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        record = await session.get(StudentFile, file_id)
        if not record:
            return {"success": False, "error": "File not found", "status_code": 404}
        return {"success": True, "file": await _file_to_dict(record, with_url=False)}


async def delete_file(file_id: int) -> Dict[str, Any]:
    """Remove the stored object first, then the row."""
    async with AsyncSessionLocal() as session:
        record = await session.get(StudentFile, file_id)
        if not record:
            return {"success": False, "error": "File not found", "status_code": 404}

        await get_storage().delete(record.file_key)
        await session.delete(record)
        await session.commit()

        logger.info(f"Deleted file {file_id} of student {record.student_id}")
        return {"success": True, "deleted_id": file_id}
