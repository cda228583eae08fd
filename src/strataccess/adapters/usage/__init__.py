"""Usage counter adapters."""

from strataccess.adapters.usage.memory import InMemoryUsageCounter
from strataccess.adapters.usage.postgres import PostgresUsageCounter

__all__ = ["InMemoryUsageCounter", "PostgresUsageCounter"]
