"""
Schools module - read-only view of the school directory.
"""

from schools_api.modules.schools.models import School
from schools_api.modules.schools.repository import SchoolRepository

__all__ = ["School", "SchoolRepository"]
