"""
Academic Structure Models

Classes and modules (subjects) generated for a school by the academic
structure provisioning routine.
"""

from enum import Enum

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.dialects.postgresql import ENUM, UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.modules.shared import BaseModel


class EducationLevel(str, Enum):
    """Education tiers a class can belong to."""

    PRIMARY = "Primary"
    O_LEVEL = "OLevel"
    A_LEVEL = "ALevel"
    TVET = "TVET"


class Curriculum(str, Enum):
    """Curriculum body a class follows."""

    REB = "REB"
    TVET = "TVET"


class ModuleType(str, Enum):
    """Whether a module is taken by every student of a class."""

    GENERAL = "General"
    OPTIONAL = "Optional"


class Class(BaseModel):
    """
    A school class for one academic year.

    ``code`` and ``username`` are globally unique generated identifiers.
    """

    __tablename__ = "classes"

    school_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("schools.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    username: Mapped[str] = mapped_column(String(150), unique=True, nullable=False)
    code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    education_lever: Mapped[EducationLevel] = mapped_column(
        ENUM(
            EducationLevel,
            name="education_level",
            create_type=True,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )
    curriculum: Mapped[Curriculum] = mapped_column(
        ENUM(
            Curriculum,
            name="curriculum",
            create_type=True,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )
    class_type: Mapped[str] = mapped_column(String(50), nullable=False, default="SchoolClass")
    academic_year: Mapped[str] = mapped_column(String(9), nullable=False)

    __table_args__ = (Index("ix_classes_school_id_name", "school_id", "name"),)

    def __repr__(self) -> str:
        return f"<Class(id={self.id}, name={self.name}, code={self.code})>"


class Module(BaseModel):
    """A subject taught in a class, optionally assigned to a teacher."""

    __tablename__ = "modules"

    school_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("schools.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    subject_type: Mapped[ModuleType] = mapped_column(
        ENUM(
            ModuleType,
            name="module_type",
            create_type=True,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=ModuleType.GENERAL,
    )
    class_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("classes.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    teacher_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("teachers.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<Module(id={self.id}, name={self.name}, type={self.subject_type.value})>"
