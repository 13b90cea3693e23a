"""Services package for the credit engine.

This package provides:
- Cached readers for settings and balances
- The allocation decision engine
- The consumption ledger
- Community statistics
- Top-up primitives for admin and payment flows
"""

from bazar.app.services.admin_credits import AdminCreditService
from bazar.app.services.credit_service import CreditService
from bazar.app.services.eligibility import EligibilityEngine, decide_allocation
from bazar.app.services.ledger import CreditLedger
from bazar.app.services.models import (
    CommunityStats,
    ConsumptionResult,
    CreditSource,
    DenyReason,
    EligibilityResult,
    SystemSettings,
    UserCreditState,
)
from bazar.app.services.readers import CreditReaders, invalidate_after_consumption
from bazar.app.services.stats import CommunityStatsReader
from bazar.app.services.store import CreditStore, SqlCreditStore

__all__ = [
    "AdminCreditService",
    "CreditService",
    "EligibilityEngine",
    "decide_allocation",
    "CreditLedger",
    "CommunityStats",
    "ConsumptionResult",
    "CreditSource",
    "DenyReason",
    "EligibilityResult",
    "SystemSettings",
    "UserCreditState",
    "CreditReaders",
    "invalidate_after_consumption",
    "CommunityStatsReader",
    "CreditStore",
    "SqlCreditStore",
]
