"""
Users module - User identity and profile management.
"""

from app.modules.users.models import Gender, User, UserRole
from app.modules.users.repository import UserRepository

__all__ = ["User", "UserRole", "Gender", "UserRepository"]
