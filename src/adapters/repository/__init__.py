"""Repository adapters - Code stores and registration persistence."""

from .memory import InMemoryCodeStore, InMemoryRegistrationRepository
from .postgres import PostgresCodeStore, PostgresRegistrationRepository, run_migrations

__all__ = [
    "InMemoryCodeStore",
    "InMemoryRegistrationRepository",
    "PostgresCodeStore",
    "PostgresRegistrationRepository",
    "run_migrations",
]
