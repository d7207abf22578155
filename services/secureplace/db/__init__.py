"""Secure Place database module."""

from .models import Base, Firm, Profile, UserProfile
from .session import get_db, get_db_health, get_db_read, get_db_read_health, init_db

__all__ = [
    "Base",
    "Firm",
    "Profile",
    "UserProfile",
    "get_db",
    "get_db_health",
    "get_db_read",
    "get_db_read_health",
    "init_db",
]
