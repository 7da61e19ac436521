from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    Text,
    Integer,
    ForeignKey,
    BigInteger,
    DateTime,
    UniqueConstraint,
    JSON,
    Index,
    func,
)
from database.engine import Base, BigIntId
from database.models.users import User
from database.models.students import Student
from core.utils.datetime import now
from datetime import datetime


class Interview(Base):
    """Interview session owned by an IOM staff member."""

    __tablename__ = "interviews"

    id: Mapped[int] = mapped_column(
        BigIntId, primary_key=True, nullable=False, autoincrement=True
    )
    period_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("periods.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    max_students: Mapped[int] = mapped_column(Integer, nullable=False)
    # Interviewers assigned to the session; generated and appended slots get them
    # even when the interview currently has no slots. Reassign, don't mutate.
    participant_ids: Mapped[list[int]] = mapped_column(
        JSON, nullable=False, default=list, server_default="[]"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, server_default=func.now()
    )

    owner: Mapped["User"] = relationship("User")
    slots: Mapped[list["InterviewSlot"]] = relationship(
        "InterviewSlot",
        back_populates="interview",
        order_by="InterviewSlot.slot_number",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class InterviewSlot(Base):
    """
    Bookable time interval.

    A slot belongs to an interview session or stands alone. ``period_id`` is
    denormalised from the session so the one-booking-per-period rule can be
    enforced by a unique constraint (NULL student ids never collide).
    """

    __tablename__ = "interview_slots"

    id: Mapped[int] = mapped_column(
        BigIntId, primary_key=True, nullable=False, autoincrement=True
    )
    interview_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("interviews.id", ondelete="CASCADE"), nullable=True
    )
    period_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("periods.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    slot_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    title: Mapped[str | None] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    student_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("students.id", ondelete="SET NULL"), nullable=True
    )
    booked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    interview: Mapped["Interview"] = relationship("Interview", back_populates="slots")
    student: Mapped["Student"] = relationship("Student")
    participants: Mapped[list["InterviewParticipant"]] = relationship(
        "InterviewParticipant",
        back_populates="slot",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    note: Mapped["InterviewNote"] = relationship(
        "InterviewNote",
        back_populates="slot",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint("period_id", "student_id", name="uq_slot_period_student"),
        UniqueConstraint("interview_id", "slot_number", name="uq_slot_interview_number"),
        Index("idx_slot_period_start", "period_id", "start_time"),
    )


class InterviewParticipant(Base):
    """Staff member attending a slot."""

    __tablename__ = "interview_participants"

    id: Mapped[int] = mapped_column(
        BigIntId, primary_key=True, nullable=False, autoincrement=True
    )
    slot_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("interview_slots.id", ondelete="CASCADE"), nullable=False
    )
    interview_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("interviews.id", ondelete="CASCADE"), nullable=True, index=True
    )
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    slot: Mapped["InterviewSlot"] = relationship("InterviewSlot", back_populates="participants")
    user: Mapped["User"] = relationship("User")

    __table_args__ = (
        UniqueConstraint("slot_id", "user_id", name="uq_participant_slot_user"),
    )


class InterviewNote(Base):
    """Interview form filled in for a booked slot. ``text`` holds JSON."""

    __tablename__ = "interview_notes"

    id: Mapped[int] = mapped_column(
        BigIntId, primary_key=True, nullable=False, autoincrement=True
    )
    slot_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("interview_slots.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    student_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=now,
        server_default=func.now(),
        onupdate=now,
    )

    slot: Mapped["InterviewSlot"] = relationship("InterviewSlot", back_populates="note")
    student: Mapped["Student"] = relationship("Student")
