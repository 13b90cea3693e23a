"""Database package for the credit engine.

This package provides:
- Database models (Profile, CreditSystemSetting, CreditTransaction,
  CommunityPotTransaction)
- Async session management
- CRUD operations for all models
"""

from bazar.app.db.base import Base
from bazar.app.db.models import (
    CommunityPotTransaction,
    CreditSystemSetting,
    CreditTransaction,
    Profile,
)

__all__ = [
    "Base",
    "CommunityPotTransaction",
    "CreditSystemSetting",
    "CreditTransaction",
    "Profile",
]
