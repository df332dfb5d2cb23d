"""
Migration manager for the agency network schema.

Handles applying SQL migrations to the Supabase/PostgreSQL database.
"""

import logging
from pathlib import Path
from typing import List, NamedTuple, Optional

from postgrest.exceptions import APIError

from ..utils.supabase import NetworkSupabaseClient

logger = logging.getLogger(__name__)

MIGRATIONS_TABLE = "agencynet_migrations"
EXEC_SQL_FUNCTION = "exec_sql"


class Migration:
    """Represents a single database migration."""

    def __init__(self, version: str, name: str, path: Path) -> None:
        """
        Initialize a migration.

        Args:
            version: Migration version (e.g., "001")
            name: Migration name (e.g., "agency_network")
            path: Path to the SQL file
        """
        self.version = version
        self.name = name
        self.path = path

    @classmethod
    def from_file(cls, path: Path) -> "Migration":
        """
        Create a Migration from a file path.

        Example:
            >>> Migration.from_file(Path("001_agency_network.sql"))
            Migration(version=001, name=agency_network)
        """
        parts = path.stem.split("_", 1)

        if len(parts) != 2 or not parts[0].isdigit():
            raise ValueError(
                f"Invalid migration filename: {path.name}. Expected format: 001_name.sql"
            )

        version, name = parts
        return cls(version=version, name=name, path=path)

    def read_sql(self) -> str:
        return self.path.read_text(encoding="utf-8")

    def __repr__(self) -> str:
        return f"Migration(version={self.version}, name={self.name})"


class MigrationState(NamedTuple):
    migration: Migration
    applied: bool


class MigrationManager:
    """
    Manages database migrations for the agency network.

    Discovers SQL files in migrations/versions and applies the pending ones
    through the ``exec_sql`` Postgres function, recording each version in
    the agencynet_migrations table.
    """

    def __init__(self, client: NetworkSupabaseClient, migrations_dir: Optional[Path] = None) -> None:
        """
        Initialize the migration manager.

        Args:
            client: Network Supabase client
            migrations_dir: Directory of NNN_name.sql files (defaults to the bundled one)
        """
        self.client = client
        self.migrations_dir = migrations_dir or Path(__file__).parent / "versions"

    def discover_migrations(self) -> List[Migration]:
        """All migration files, sorted by version."""
        if not self.migrations_dir.exists():
            return []

        migrations = []
        for path in self.migrations_dir.glob("*.sql"):
            try:
                migrations.append(Migration.from_file(path))
            except ValueError as e:
                logger.warning("Skipping invalid migration file: %s", e)

        migrations.sort(key=lambda m: m.version)
        return migrations

    async def get_applied_migrations(self) -> List[str]:
        """Versions already recorded as applied."""
        try:
            result = await self.client.table(MIGRATIONS_TABLE).select("version").execute()
        except APIError as e:
            # the tracking table is created by the first migration
            logger.debug("No migrations table yet: %s", e)
            return []
        return [row["version"] for row in result.data]

    async def apply_migration(self, migration: Migration) -> None:
        """
        Apply a single migration and record it.

        Raises:
            APIError: If the SQL fails to execute
        """
        logger.info("Applying migration %s: %s", migration.version, migration.name)

        try:
            await self._execute_sql(migration.read_sql())
        except APIError as e:
            logger.error("Migration %s failed: %s", migration.version, e)
            raise

        await self.client.table(MIGRATIONS_TABLE).upsert(
            {"version": migration.version, "name": migration.name},
            on_conflict="version",
        ).execute()
        logger.info("Migration %s applied", migration.version)

    async def _execute_sql(self, sql: str) -> None:
        """
        Execute raw SQL through the ``exec_sql(sql text)`` function.

        The function has to be created once with the service role, e.g. from
        the Supabase SQL editor.
        """
        await self.client.rpc(EXEC_SQL_FUNCTION, {"sql": sql}).execute()

    async def migrate(self, target: Optional[str] = None) -> List[Migration]:
        """
        Run all pending migrations up to the target version.

        Args:
            target: Target migration version (default: latest)

        Returns:
            The migrations that were applied
        """
        migrations = self.discover_migrations()

        if not migrations:
            logger.info("No migrations found")
            return []

        applied = await self.get_applied_migrations()
        pending = [m for m in migrations if m.version not in applied]

        if target:
            pending = [m for m in pending if m.version <= target]

        if not pending:
            logger.info("No pending migrations")
            return []

        logger.info("Found %d pending migration(s)", len(pending))

        for migration in pending:
            await self.apply_migration(migration)

        return pending

    async def status(self) -> List[MigrationState]:
        """Every known migration with whether it is applied."""
        applied = set(await self.get_applied_migrations())
        return [
            MigrationState(migration, migration.version in applied)
            for migration in self.discover_migrations()
        ]
