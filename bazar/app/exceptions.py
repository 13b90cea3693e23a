"""Custom exceptions for the credit engine."""


class BazarError(Exception):
    """Base class for credit engine exceptions with a machine-readable code.

    All custom exceptions should inherit from this class and define
    their specific ``code`` for consistent handling by callers.
    """
    code: str = "error"

    def __init__(self, message: str = "Credit engine error"):
        self.message = message
        super().__init__(message)


class ProfileNotFoundError(BazarError):
    """Raised when no profile row exists for a user id."""
    code = "profile_not_found"

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"Profile not found: {user_id}")


class InsufficientCreditsError(BazarError):
    """Raised when a personal-credit debit would make the balance negative."""
    code = "insufficient_credits"

    def __init__(self, user_id: str, available: int = 0):
        self.user_id = user_id
        self.available = available
        super().__init__(
            f"No personal credits available for {user_id} (balance: {available})"
        )


class InsufficientPotBalanceError(BazarError):
    """Raised when a community pot delta would make the balance negative."""
    code = "community_pot_empty"

    def __init__(self, balance: int = 0, delta: int = 0):
        self.balance = balance
        self.delta = delta
        super().__init__(
            f"Community pot balance {balance} cannot absorb delta {delta}"
        )


class InvalidAmountError(BazarError):
    """Raised when a top-up or grant amount is not positive."""
    code = "invalid_amount"

    def __init__(self, amount: int | float):
        self.amount = amount
        super().__init__(f"Amount must be positive, got {amount}")


class CreditStoreError(BazarError):
    """Raised when the persistent store fails.

    Wraps driver and ORM errors so callers only deal with BazarError.
    """
    code = "store_error"

    def __init__(self, operation: str, detail: str = ""):
        self.operation = operation
        self.detail = detail
        message = f"Credit store operation failed: {operation}"
        if detail:
            message += f" ({detail})"
        super().__init__(message)
