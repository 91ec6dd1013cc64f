"""Configuration management for PeerBank."""
import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _env_decimal(name: str, default: Decimal) -> Decimal:
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        value = Decimal(raw)
    except InvalidOperation:
        raise ValueError(f"{name} must be a decimal number, got {raw!r}")
    if not value.is_finite() or value < 0:
        raise ValueError(f"{name} must be a non-negative number, got {raw!r}")
    return value


_LOG_LEVELS = ('CRITICAL', 'ERROR', 'WARNING', 'INFO', 'DEBUG')


def _env_log_level(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    level = raw.strip().upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"{name} must be one of {', '.join(_LOG_LEVELS)}, got {raw!r}")
    return level


@dataclass
class Settings:
    """Configuration settings for PeerBank.

    This class centralizes all configuration values, replacing hardcoded
    values throughout the codebase.
    """

    # Database Configuration
    db_path: str = 'peerbank.db'

    # Business Rules
    starting_balance: Decimal = Decimal('1000')
    account_number_length: int = 10
    currency_places: int = 2
    max_conflict_retries: int = 3

    # Sessions
    session_ttl_minutes: int = 60

    # Logging
    log_level: str = 'INFO'
    log_file: Optional[str] = None

    # Display
    history_limit: int = 20

    @classmethod
    def load(cls) -> 'Settings':
        """Load settings from environment variables.

        Unset variables keep their defaults.

        Returns:
            Settings: A Settings instance with values from environment variables.

        Raises:
            ValueError: If a variable is set to a malformed value.
        """
        defaults = cls()
        return cls(
            db_path=os.getenv('PEERBANK_DB_PATH') or defaults.db_path,
            starting_balance=_env_decimal('PEERBANK_STARTING_BALANCE', defaults.starting_balance),
            max_conflict_retries=_env_int('PEERBANK_MAX_CONFLICT_RETRIES', defaults.max_conflict_retries),
            session_ttl_minutes=_env_int('PEERBANK_SESSION_TTL_MINUTES', defaults.session_ttl_minutes),
            log_level=_env_log_level('PEERBANK_LOG_LEVEL', defaults.log_level),
            log_file=os.getenv('PEERBANK_LOG_FILE') or None,
        )
