"""Rubric question and score matrix endpoints."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel, Field

from api.dependencies import raise_for_result
from core.middleware.authorization import Permission, require_permission
from api.services import scoring as scoring_service
from database.models.scoring import ScoreCategory

questions_router = APIRouter(prefix="/questions", tags=["scoring"])
score_matrix_router = APIRouter(prefix="/score-matrix", tags=["scoring"])


class CreateQuestionRequest(BaseModel):
    question: str = Field(..., max_length=1000)


class ScoreEntry(BaseModel):
    question_id: int
    score_category: ScoreCategory
    comment: Optional[str] = None


class SaveScoreMatrixRequest(BaseModel):
    """Batch of rubric answers for one student in one period."""
    student_id: int
    period_id: int
    entries: List[ScoreEntry] = Field(..., min_length=1)


@questions_router.get(
    "",
    summary="List Questions",
    dependencies=[Depends(require_permission(Permission.QUESTION_READ))],
)
async def list_questions():
    return await scoring_service.list_questions()


@questions_router.post(
    "",
    status_code=201,
    summary="Create Question",
    dependencies=[Depends(require_permission(Permission.QUESTION_MANAGE))],
)
async def create_question(data: CreateQuestionRequest):
    result = await scoring_service.create_question(data.question)
    raise_for_result(result)
    return result


@questions_router.delete(
    "/{question_id}",
    summary="Delete Question",
    dependencies=[Depends(require_permission(Permission.QUESTION_MANAGE))],
)
async def delete_question(question_id: int = Path(..., description="Question ID")):
    result = await scoring_service.delete_question(question_id)
    raise_for_result(result)
    return result


@score_matrix_router.get(
    "/{student_id}/{period_id}",
    summary="Get Score Matrix",
    dependencies=[Depends(require_permission(Permission.SCORE_READ))],
)
async def get_score_matrix(student_id: int = Path(...), period_id: int = Path(...)):
    return await scoring_service.get_score_matrix(student_id, period_id)


@score_matrix_router.put(
    "",
    summary="Save Score Matrix",
    dependencies=[Depends(require_permission(Permission.SCORE_WRITE))],
)
async def save_score_matrix(data: SaveScoreMatrixRequest):
    """Upsert every entry, or none if any entry is invalid."""
    result = await scoring_service.save_score_matrix(
        data.student_id,
        data.period_id,
        [e.model_dump(mode="json") for e in data.entries],
    )
    raise_for_result(result)
    return result
