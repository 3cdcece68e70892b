"""Plain-SQL schema migrations.

Files in the migrations directory are named ``<version>_<description>.sql``
and applied in version order, each inside its own transaction. Applied
versions are recorded in ``schema_migrations`` and skipped on later runs.
"""

import logging
import re
from pathlib import Path

import psycopg
from psycopg_pool import ConnectionPool

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"^(\d+)_.+\.sql$")

_CREATE_TRACKING_TABLE = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    version BIGINT PRIMARY KEY,
    filename TEXT NOT NULL,
    applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
)
"""


class MigrationError(RuntimeError):
    pass


def list_migration_files(migrations_dir: Path) -> list[tuple[int, Path]]:
    files: list[tuple[int, Path]] = []
    for path in migrations_dir.iterdir():
        if not path.is_file():
            continue
        match = _VERSION_RE.match(path.name)
        if not match:
            if path.suffix == ".sql":
                logger.warning("Ignoring migration without version prefix: %s", path.name)
            continue
        files.append((int(match.group(1)), path))
    files.sort(key=lambda item: item[0])
    versions = [version for version, _ in files]
    if len(versions) != len(set(versions)):
        raise MigrationError("Duplicate migration versions in %s" % migrations_dir)
    return files


def run_migrations(pool: ConnectionPool, migrations_dir: Path) -> list[str]:
    """Apply pending migrations and return the filenames applied."""
    if not migrations_dir.is_dir():
        logger.warning("No migrations directory at %s, skipping migrations", migrations_dir)
        return []

    files = list_migration_files(migrations_dir)
    logger.info("Found %d migration file(s)", len(files))

    applied: list[str] = []
    with pool.connection() as conn:
        conn.execute(_CREATE_TRACKING_TABLE)
        rows = conn.execute("SELECT version FROM schema_migrations").fetchall()
        done = {int(row["version"]) for row in rows}
        conn.commit()

        for version, path in files:
            if version in done:
                logger.debug("Skipping already applied migration: %s", path.name)
                continue
            sql_text = path.read_text(encoding="utf-8")
            logger.info("Applying migration: %s", path.name)
            try:
                with conn.transaction():
                    conn.execute(sql_text)
                    conn.execute(
                        "INSERT INTO schema_migrations (version, filename) VALUES (%s, %s)",
                        (version, path.name),
                    )
            except psycopg.Error as exc:
                raise MigrationError(f"Migration {path.name} failed: {exc}") from exc
            applied.append(path.name)

    logger.info("Migrations complete (%d applied)", len(applied))
    return applied
