"""Account data model."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal


@dataclass
class Account:
    """Represents a bank account owned by exactly one user."""

    id: int | None
    account_no: str
    owner: int
    balance: Decimal
    version: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def can_cover(self, amount: Decimal) -> bool:
        """Return True if the balance can be debited by ``amount``; draining to zero is allowed."""
        return self.balance >= amount
