"""Data access for accounts, transactions and users."""
