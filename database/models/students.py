from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, ForeignKey, BigInteger

from database.engine import Base
from database.models.users import User


class Student(Base):
    """Applicant profile. Shares its primary key with the owning user."""

    __tablename__ = "students"

    id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    nim: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, index=True)
    faculty: Mapped[str] = mapped_column(String(255), nullable=False)
    major: Mapped[str] = mapped_column(String(255), nullable=False)

    user: Mapped["User"] = relationship("User", lazy="joined")
