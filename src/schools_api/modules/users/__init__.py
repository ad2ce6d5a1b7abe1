"""
Users module - the credential store.
"""

from schools_api.modules.users.models import User, UserRole
from schools_api.modules.users.repository import UserRepository

__all__ = ["User", "UserRole", "UserRepository"]
