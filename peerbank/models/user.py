"""User data model."""

from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass
class User:
    """A registered user; owns at most one account."""

    id: int | None
    username: str
    email: str
    password_hash: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
