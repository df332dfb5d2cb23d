"""Schema migrations for the agency network tables."""

from .manager import Migration, MigrationManager

__all__ = ["Migration", "MigrationManager"]
