"""Per-key mutual exclusion for balance and provisioning updates."""

import threading
from contextlib import contextmanager
from typing import Hashable, Iterator


class _Entry:
    __slots__ = ("lock", "holders")

    def __init__(self):
        self.lock = threading.Lock()
        self.holders = 0


class KeyedLocks:
    """
    Hands out one lock per key while anyone holds or waits on it.

    Entries are reference-counted and dropped when the last holder releases,
    so keys that arrive from callers (including unknown account numbers) do
    not accumulate. ``hold`` acquires several keys at once, always in sorted
    order, so two callers asking for the same pair in opposite order cannot
    deadlock.
    """

    def __init__(self):
        self._entries: dict[Hashable, _Entry] = {}
        self._guard = threading.Lock()

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    def _checkout(self, key: Hashable) -> _Entry:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.holders += 1
            return entry

    def _checkin(self, key: Hashable, entry: _Entry) -> None:
        with self._guard:
            entry.holders -= 1
            if entry.holders == 0:
                del self._entries[key]

    @contextmanager
    def hold(self, *keys: Hashable) -> Iterator[None]:
        acquired: list[tuple[Hashable, _Entry]] = []
        try:
            for key in sorted(set(keys)):
                entry = self._checkout(key)
                try:
                    entry.lock.acquire()
                except BaseException:
                    self._checkin(key, entry)
                    raise
                acquired.append((key, entry))
            yield
        finally:
            for key, entry in reversed(acquired):
                entry.lock.release()
                self._checkin(key, entry)


class AccountLocks:
    """Lock registries for account numbers and for account owners."""

    def __init__(self):
        self._accounts = KeyedLocks()
        self._owners = KeyedLocks()

    def hold_accounts(self, *account_nos: str):
        """Serialize read-validate-write sequences on the given accounts."""
        return self._accounts.hold(*account_nos)

    def hold_owner(self, owner: int):
        """Serialize account creation for one user."""
        return self._owners.hold(owner)

    def tracked(self) -> int:
        """Number of account and owner keys currently held or awaited."""
        return len(self._accounts) + len(self._owners)
