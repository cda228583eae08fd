"""Adapters - Infrastructure implementations of core interfaces.

Adapters are organized by type:
- db/: Application database connection pool
- auth/: Credential store (PostgreSQL, in-memory)
- billing/: Organization plan cache and subscription providers
- usage/: Live resource counts for plan limits
"""
