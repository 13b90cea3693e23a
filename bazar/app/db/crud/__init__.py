"""CRUD operations package.

- profile.py: balances, daily usage counters and donor totals
- settings.py: credit system settings and the atomic pot delta
- transactions.py: append-only ledger rows
"""

# Profile operations
from bazar.app.db.crud.profile import (
    create_profile,
    get_profile,
    get_credit_columns,
    update_daily_usage,
    set_personal_credits,
    adjust_personal_credits,
    get_donation_totals,
    add_donation_totals,
)

# Settings operations
from bazar.app.db.crud.settings import (
    COMMUNITY_POT_BALANCE_KEY,
    DAILY_FREE_LISTINGS_KEY,
    get_setting_values,
    get_setting_value,
    upsert_setting,
    adjust_setting_value,
)

# Transaction operations
from bazar.app.db.crud.transactions import (
    create_credit_transaction,
    create_pot_transaction,
    list_credit_transactions,
    list_pot_transactions,
)

__all__ = [
    # Profile operations
    "create_profile",
    "get_profile",
    "get_credit_columns",
    "update_daily_usage",
    "set_personal_credits",
    "adjust_personal_credits",
    "get_donation_totals",
    "add_donation_totals",
    # Settings operations
    "COMMUNITY_POT_BALANCE_KEY",
    "DAILY_FREE_LISTINGS_KEY",
    "get_setting_values",
    "get_setting_value",
    "upsert_setting",
    "adjust_setting_value",
    # Transaction operations
    "create_credit_transaction",
    "create_pot_transaction",
    "list_credit_transactions",
    "list_pot_transactions",
]
