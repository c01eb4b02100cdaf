"""Integration tests for the voting system.

This package contains integration tests that run against a real
PostgreSQL server:

- Ledger uniqueness under concurrent votes
- Chunked vote reset
- Competition record upserts

All tests skip when PostgreSQL is not reachable (see POSTGRES_* variables).
"""
