"""
Interview rubric service functions.

Questions make up the rubric; the score matrix holds one answer per
(student, period, question).
"""

from typing import Any, Dict, List
import logging

from sqlalchemy import select, delete

from database.engine import AsyncSessionLocal
from database.models.scoring import Question, ScoreCategory, ScoreMatrix
from database.models.statuses import Status

logger = logging.getLogger(__name__)


def question_to_dict(question: Question) -> Dict[str, Any]:
    return {"id": question.id, "question": question.question}


def score_to_dict(score: ScoreMatrix) -> Dict[str, Any]:
    return {
        "id": score.id,
        "student_id": score.student_id,
        "period_id": score.period_id,
        "question_id": score.question_id,
        "question": score.question.question if score.question else None,
        "score_category": score.score_category.value,
        "comment": score.comment,
    }


async def list_questions() -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        result = await session.execute(select(Question).order_by(Question.id))
        return {"success": True, "questions": [question_to_dict(q) for q in result.scalars().all()]}


async def create_question(text: str) -> Dict[str, Any]:
    text = (text or "").strip()
    if not text:
        return {"success": False, "error": "Question must not be empty", "status_code": 400}

    async with AsyncSessionLocal() as session:
        question = Question(question=text)
        session.add(question)
        await session.commit()
        logger.info(f"Question {question.id} created")
        return {"success": True, "question": question_to_dict(question)}


async def delete_question(question_id: int) -> Dict[str, Any]:
    """Delete a question together with every score given for it."""
    async with AsyncSessionLocal() as session:
        question = await session.get(Question, question_id)
        if not question:
            return {"success": False, "error": "Question not found", "status_code": 404}

        await session.execute(delete(ScoreMatrix).where(ScoreMatrix.question_id == question_id))
        await session.execute(delete(Question).where(Question.id == question_id))
        await session.commit()

        logger.info(f"Question {question_id} deleted")
        return {"success": True, "deleted_id": question_id}


async def get_score_matrix(student_id: int, period_id: int) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        result = await session.execute(
            select(ScoreMatrix)
            .where(ScoreMatrix.student_id == student_id, ScoreMatrix.period_id == period_id)
            .order_by(ScoreMatrix.question_id)
        )
        return {
            "success": True,
            "student_id": student_id,
            "period_id": period_id,
            "scores": [score_to_dict(s) for s in result.scalars().all()],
        }


async def save_score_matrix(
    student_id: int,
    period_id: int,
    entries: List[Dict[str, Any]],
) -> Dict[str, Any]:
    """
    Upsert a batch of rubric answers.

    The batch is validated as a whole before anything is written: an
    unknown question or category rejects every entry.

    Args:
        student_id: Scored student
        period_id: Period of the interview
        entries: Items with ``question_id``, ``score_category`` and an
            optional ``comment``

    Returns:
        Dictionary with the student's full score matrix
    """
    async with AsyncSessionLocal() as session:
        if not await session.get(Status, (student_id, period_id)):
            return {
                "success": False,
                "error": "Student is not registered in this period",
                "status_code": 404,
            }

        question_ids = {e["question_id"] for e in entries}
        result = await session.execute(select(Question.id).where(Question.id.in_(question_ids)))
        unknown = sorted(question_ids - set(result.scalars().all()))
        if unknown:
            return {
                "success": False,
                "error": "Unknown question",
                "status_code": 400,
                "unknown_question_ids": unknown,
            }

        try:
            categories = [ScoreCategory(e["score_category"]) for e in entries]
        except ValueError:
            return {"success": False, "error": "Invalid score category", "status_code": 400}

        existing_result = await session.execute(
            select(ScoreMatrix).where(
                ScoreMatrix.student_id == student_id,
                ScoreMatrix.period_id == period_id,
                ScoreMatrix.question_id.in_(question_ids),
            )
        )
        existing = {s.question_id: s for s in existing_result.scalars().unique().all()}

        for entry, category in zip(entries, categories):
            score = existing.get(entry["question_id"])
            if score is None:
                score = ScoreMatrix(
                    student_id=student_id,
                    period_id=period_id,
                    question_id=entry["question_id"],
                )
                session.add(score)
                existing[entry["question_id"]] = score
            score.score_category = category
            score.comment = entry.get("comment") or ""

        await session.commit()
        logger.info(f"Saved {len(entries)} scores for student {student_id} in period {period_id}")

    return await get_score_matrix(student_id, period_id)
