"""
Academic Structure Planning

Pure expansion of a school's curriculum configuration into the classes and
modules that should exist for one academic year. No database access happens
here; the schools service assigns identifiers and persists the plan.

Tiers:
- Primary: P1..P6, every primary subject is a General module of every class
- O-Level: S1..S3, core subjects General, option subjects Optional
- A-Level: S4..S6 per subject combination, the combination itself is the
  General module and every A-Level option subject is Optional
- TVET: L3..L5 per specialization, the specialization is the General module
  and every TVET option subject is Optional
"""

import re
from dataclasses import dataclass, field
from datetime import date

from app.modules.academics.models import Curriculum, EducationLevel, ModuleType
from app.modules.schools.schemas import SchoolAcademicCreate

PRIMARY_LEVELS = ("P1", "P2", "P3", "P4", "P5", "P6")
O_LEVEL_LEVELS = ("S1", "S2", "S3")
A_LEVEL_LEVELS = ("S4", "S5", "S6")
TVET_LEVELS = ("L3", "L4", "L5")

# Column sizes of classes.name and classes.username
MAX_CLASS_NAME_LENGTH = 200
MAX_CLASS_USERNAME_LENGTH = 150

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class PlannedModule:
    name: str
    subject_type: ModuleType


@dataclass
class PlannedClass:
    level: str
    name: str
    education_lever: EducationLevel
    curriculum: Curriculum
    modules: list[PlannedModule] = field(default_factory=list)


@dataclass
class AcademicPlan:
    academic_year: str
    classes: list[PlannedClass] = field(default_factory=list)

    @property
    def total_classes(self) -> int:
        return len(self.classes)

    @property
    def total_modules(self) -> int:
        return sum(len(planned.modules) for planned in self.classes)


def academic_year_for(today: date) -> str:
    """Return the academic year label starting in today's year, e.g. "2026-2027"."""
    return f"{today.year}-{today.year + 1}"


def _compact(value: str) -> str:
    return _WHITESPACE.sub("", value)


def _class_name(prefix: str, school: str, academic_year: str) -> str:
    """Join the parts of a class name, shortening the school part to fit the column."""
    room = MAX_CLASS_NAME_LENGTH - len(prefix) - len(academic_year) - 2
    return f"{prefix} {school[: max(room, 0)]} {academic_year}"[:MAX_CLASS_NAME_LENGTH]


def _modules(names: list[str], subject_type: ModuleType) -> list[PlannedModule]:
    return [PlannedModule(name=name, subject_type=subject_type) for name in names]


def build_academic_plan(
    school_name: str,
    config: SchoolAcademicCreate,
    academic_year: str,
) -> AcademicPlan:
    """
    Expand a curriculum configuration into planned classes and modules.

    Args:
        school_name: Display name of the school (whitespace is stripped in class names)
        config: Validated academic configuration
        academic_year: Label such as "2026-2027"

    Returns:
        AcademicPlan listing every class with the modules attached to it
    """
    school = _compact(school_name)
    plan = AcademicPlan(academic_year=academic_year)

    if config.primary_subjects_offered:
        for level in PRIMARY_LEVELS:
            plan.classes.append(
                PlannedClass(
                    level=level,
                    name=_class_name(level, school, academic_year),
                    education_lever=EducationLevel.PRIMARY,
                    curriculum=Curriculum.REB,
                    modules=_modules(config.primary_subjects_offered, ModuleType.GENERAL),
                )
            )

    if config.o_level_core_subjects:
        for level in O_LEVEL_LEVELS:
            plan.classes.append(
                PlannedClass(
                    level=level,
                    name=_class_name(level, school, academic_year),
                    education_lever=EducationLevel.O_LEVEL,
                    curriculum=Curriculum.REB,
                    modules=_modules(config.o_level_core_subjects, ModuleType.GENERAL)
                    + _modules(config.o_level_option_subjects, ModuleType.OPTIONAL),
                )
            )

    for combination in config.a_level_subject_combination:
        for level in A_LEVEL_LEVELS:
            plan.classes.append(
                PlannedClass(
                    level=level,
                    name=_class_name(f"{level} {combination}", school, academic_year),
                    education_lever=EducationLevel.A_LEVEL,
                    curriculum=Curriculum.REB,
                    modules=_modules([combination], ModuleType.GENERAL)
                    + _modules(config.a_level_option_subjects, ModuleType.OPTIONAL),
                )
            )

    for specialization in config.tvet_specialization:
        for level in TVET_LEVELS:
            plan.classes.append(
                PlannedClass(
                    level=level,
                    name=_class_name(
                        f"{level} {_compact(specialization)}", school, academic_year
                    ),
                    education_lever=EducationLevel.TVET,
                    curriculum=Curriculum.TVET,
                    modules=_modules([specialization], ModuleType.GENERAL)
                    + _modules(config.tvet_option_subjects, ModuleType.OPTIONAL),
                )
            )

    return plan


def build_academic_profile(config: SchoolAcademicCreate) -> dict:
    """
    Structure the configuration for storage on the school.

    Omitted lists are stored as empty lists.
    """
    return {
        "assessment_types": list(config.assessment_types),
        "primary": {
            "subjects_offered": list(config.primary_subjects_offered),
            "pass_mark": config.primary_pass_mark,
        },
        "o_level": {
            "core_subjects": list(config.o_level_core_subjects),
            "option_subjects": list(config.o_level_option_subjects),
            "examination_types": list(config.o_level_examination_types),
            "assessment": list(config.o_level_assessment),
        },
        "a_level": {
            "subject_combinations": list(config.a_level_subject_combination),
            "option_subjects": list(config.a_level_option_subjects),
            "pass_mark": config.a_level_pass_mark,
        },
        "tvet": {
            "specializations": list(config.tvet_specialization),
            "option_subjects": list(config.tvet_option_subjects),
        },
    }
