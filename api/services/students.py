"""Student profile service functions."""

from typing import Any, Dict
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from database.engine import AsyncSessionLocal
from database.models.users import User
from database.models.students import Student

logger = logging.getLogger(__name__)


def student_to_dict(student: Student) -> Dict[str, Any]:
    return {
        "id": student.id,
        "nim": student.nim,
        "faculty": student.faculty,
        "major": student.major,
        "name": student.user.name if student.user else None,
        "email": student.user.email if student.user else None,
    }


async def list_students() -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        result = await session.execute(
            select(Student.id, Student.nim, User.name)
            .join(User, User.id == Student.id)
            .order_by(Student.nim)
        )
        return {
            "success": True,
            "students": [
                {"id": row.id, "nim": row.nim, "name": row.name} for row in result.all()
            ],
        }


async def get_student(student_id: int) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        student = await session.get(Student, student_id)
        if not student:
            return {"success": False, "error": "Student not found", "status_code": 404}
        return {"success": True, "student": student_to_dict(student)}


async def upsert_profile(user_id: int, nim: str, faculty: str, major: str) -> Dict[str, Any]:
    """
    Create or update the caller's student profile.

    Returns:
        Dictionary with the profile, or a 409 failure when the NIM belongs
        to another student
    """
    nim = nim.strip()
    async with AsyncSessionLocal() as session:
        taken = await session.execute(
            select(Student.id).where(Student.nim == nim, Student.id != user_id)
        )
        if taken.scalar_one_or_none():
            return {"success": False, "error": "NIM already registered", "status_code": 409}

        student = await session.get(Student, user_id)
        created = student is None
        if created:
            student = Student(id=user_id, nim=nim, faculty=faculty.strip(), major=major.strip())
            session.add(student)
        else:
            student.nim = nim
            student.faculty = faculty.strip()
            student.major = major.strip()

        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            return {"success": False, "error": "NIM already registered", "status_code": 409}

        await session.refresh(student, ["user"])
        logger.info(f"Student profile {'created' if created else 'updated'} for user {user_id}")
        return {"success": True, "created": created, "student": student_to_dict(student)}
