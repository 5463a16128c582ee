"""Schema migrations for the PostgreSQL backend."""

from .runner import MigrationRunner

__all__ = ["MigrationRunner"]
