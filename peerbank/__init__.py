"""PeerBank: accounts and peer-to-peer transfers over a SQLite ledger."""

__version__ = "0.1.0"
