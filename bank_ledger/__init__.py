"""Bank ledger: accounts, deposits and transfers over an append-only log."""
