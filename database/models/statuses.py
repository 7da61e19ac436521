from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Boolean, ForeignKey, BigInteger, Numeric, Index

from database.engine import Base
from database.models.students import Student
from database.models.periods import Period
from decimal import Decimal


class Status(Base):
    """
    Screening and approval outcome of one student in one period.

    The composite primary key guarantees a single registration per
    student and period.
    """

    __tablename__ = "statuses"

    student_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("students.id", ondelete="CASCADE"),
        primary_key=True,
    )
    period_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("periods.id", ondelete="CASCADE"),
        primary_key=True,
    )
    pass_ditmawa: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    pass_iom: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    pass_interview: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)

    student: Mapped["Student"] = relationship("Student", lazy="joined")
    period: Mapped["Period"] = relationship("Period", lazy="joined")

    __table_args__ = (
        Index("idx_status_period", "period_id"),
    )
