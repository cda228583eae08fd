"""Auth adapters."""

from strataccess.adapters.auth.memory import InMemoryAuthRepository
from strataccess.adapters.auth.postgres import PostgresAuthRepository

__all__ = ["InMemoryAuthRepository", "PostgresAuthRepository"]
