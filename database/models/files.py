from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    ForeignKey,
    BigInteger,
    DateTime,
    Enum as SQLEnum,
    UniqueConstraint,
    func,
)
from database.engine import Base, BigIntId
from database.models.students import Student
from core.utils.datetime import now
from datetime import datetime
from enum import Enum as PyEnum


class FileType(str, PyEnum):
    KTP = "KTP"  # national identity card
    CV = "CV"
    TRANSKRIP_NILAI = "Transkrip_Nilai"  # academic transcript
    KTM = "KTM"  # student identity card
    SURAT_REKOMENDASI = "Surat_Rekomendasi"  # recommendation letter

    @property
    def title(self) -> str:
        return self.value.replace("_", " ")


class StudentFile(Base):
    """Metadata of a document stored in object storage."""

    __tablename__ = "files"

    id: Mapped[int] = mapped_column(
        BigIntId, primary_key=True, nullable=False, autoincrement=True
    )
    student_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    file_type: Mapped[FileType] = mapped_column(
        SQLEnum(FileType, native_enum=False, length=50), nullable=False
    )
    file_key: Mapped[str] = mapped_column(String(512), nullable=False)
    original_name: Mapped[str | None] = mapped_column(String(255))
    content_type: Mapped[str | None] = mapped_column(String(255))
    size: Mapped[int | None] = mapped_column(BigInteger)
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=now,
        server_default=func.now(),
    )

    student: Mapped["Student"] = relationship("Student")

    __table_args__ = (
        UniqueConstraint("student_id", "file_type", name="uq_file_student_type"),
    )
