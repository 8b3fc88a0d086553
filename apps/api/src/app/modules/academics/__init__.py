"""
Academics module - Generated classes and modules (subjects).
"""

from app.modules.academics.models import Class, Curriculum, EducationLevel, Module, ModuleType

__all__ = ["Class", "Module", "ModuleType", "EducationLevel", "Curriculum"]
