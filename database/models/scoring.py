from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    Text,
    ForeignKey,
    BigInteger,
    Enum as SQLEnum,
    UniqueConstraint,
)
from database.engine import Base, BigIntId
from enum import Enum as PyEnum


class ScoreCategory(str, PyEnum):
    KURANG = "KURANG"  # insufficient
    CUKUP = "CUKUP"  # sufficient
    BAIK = "BAIK"  # good


class Question(Base):
    """Rubric question asked during interviews."""

    __tablename__ = "questions"

    id: Mapped[int] = mapped_column(
        BigIntId, primary_key=True, nullable=False, autoincrement=True
    )
    question: Mapped[str] = mapped_column(String(1000), nullable=False)


class ScoreMatrix(Base):
    """Answer to one rubric question for a student in a period."""

    __tablename__ = "score_matrix"

    id: Mapped[int] = mapped_column(
        BigIntId, primary_key=True, nullable=False, autoincrement=True
    )
    student_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("students.id", ondelete="CASCADE"), nullable=False
    )
    period_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("periods.id", ondelete="CASCADE"), nullable=False
    )
    question_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False
    )
    score_category: Mapped[ScoreCategory] = mapped_column(
        SQLEnum(ScoreCategory, native_enum=False, length=20), nullable=False
    )
    comment: Mapped[str] = mapped_column(Text, nullable=False, default="")

    question: Mapped["Question"] = relationship("Question", lazy="joined")

    __table_args__ = (
        UniqueConstraint(
            "student_id", "period_id", "question_id", name="uq_score_student_period_question"
        ),
    )
