"""SQLite catalog implementation for local development."""

import sqlite3
from pathlib import Path

import databases
import sqlalchemy as sa
from loguru import logger

from ..exceptions import StorageError
from ..models import partition_key
from ..types import CatalogRow

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS diagrams (
    pk VARCHAR NOT NULL,
    sk VARCHAR NOT NULL,
    diagram_id VARCHAR NOT NULL,
    owner_id VARCHAR NOT NULL,
    diagram_type VARCHAR NOT NULL,
    format VARCHAR NOT NULL,
    created_at VARCHAR NOT NULL,
    content_key VARCHAR NOT NULL,
    metadata JSON,
    PRIMARY KEY (pk, sk)
)
"""

_CREATE_INDEX_SQL = "CREATE INDEX IF NOT EXISTS idx_diagrams_diagram_id ON diagrams (pk, diagram_id)"


class SQLiteMetadataStore:
    """Catalog stored in a single SQLite table, mirroring the DynamoDB key layout."""

    def __init__(self, database_url: str):
        """Initialize SQLite catalog.

        Args:
            database_url: Database connection URL.
        """
        self.database_url = database_url
        self.database = databases.Database(database_url)
        self.metadata = sa.MetaData()

        self.diagrams = sa.Table(
            "diagrams",
            self.metadata,
            sa.Column("pk", sa.String, primary_key=True),
            sa.Column("sk", sa.String, primary_key=True),
            sa.Column("diagram_id", sa.String, index=True),
            sa.Column("owner_id", sa.String),
            sa.Column("diagram_type", sa.String),
            sa.Column("format", sa.String),
            sa.Column("created_at", sa.String),
            sa.Column("content_key", sa.String),
            sa.Column("metadata", sa.JSON),
        )

    async def startup(self) -> None:
        """Open the connection and create the table if missing."""
        self._ensure_parent_directory()
        await self.database.connect()
        await self.database.execute(_CREATE_TABLE_SQL)
        await self.database.execute(_CREATE_INDEX_SQL)
        logger.info(f"SQLite catalog ready at {self.database_url}")

    async def shutdown(self) -> None:
        """Close database connection."""
        await self.database.disconnect()

    async def put(self, row: CatalogRow) -> None:
        query = self.diagrams.insert().values(
            pk=row["PK"],
            sk=row["SK"],
            diagram_id=row["diagramId"],
            owner_id=row["ownerId"],
            diagram_type=row["diagramType"],
            format=row["format"],
            created_at=row["createdAt"],
            content_key=row["contentKey"],
            metadata=row.get("metadata") or {},
        )
        await self._execute("put", query)

    async def query_by_partition(
        self, owner_id: str, descending: bool = True, diagram_id: str | None = None
    ) -> list[CatalogRow]:
        table = self.diagrams
        order = table.c.sk.desc() if descending else table.c.sk.asc()
        query = table.select().where(table.c.pk == partition_key(owner_id)).order_by(order)
        if diagram_id is not None:
            query = query.where(table.c.diagram_id == diagram_id)

        try:
            rows = await self.database.fetch_all(query)
        except (sqlite3.Error, sa.exc.SQLAlchemyError) as e:
            logger.error(f"SQLite query failed: {e}")
            raise StorageError(f"Catalog query failed: {e}") from e

        return [
            {
                "PK": row["pk"],
                "SK": row["sk"],
                "diagramId": row["diagram_id"],
                "ownerId": row["owner_id"],
                "diagramType": row["diagram_type"],
                "format": row["format"],
                "createdAt": row["created_at"],
                "contentKey": row["content_key"],
                "metadata": row["metadata"] or {},
            }
            for row in rows
        ]

    async def delete_by_key(self, partition_key: str, sort_key: str) -> None:
        table = self.diagrams
        query = table.delete().where(table.c.pk == partition_key).where(table.c.sk == sort_key)
        await self._execute("delete", query)

    async def health_check(self) -> bool:
        """Check if database is accessible.

        Returns:
            True if database is healthy, False otherwise.
        """
        try:
            await self.database.execute("SELECT 1")
            return True
        except (sqlite3.Error, sa.exc.SQLAlchemyError, AssertionError):
            logger.exception("Database health check failed")
            return False

    async def _execute(self, action: str, query: sa.sql.Executable) -> None:
        try:
            await self.database.execute(query)
        except (sqlite3.Error, sa.exc.SQLAlchemyError) as e:
            logger.error(f"SQLite {action} failed: {e}")
            raise StorageError(f"Catalog {action} failed: {e}") from e

    def _ensure_parent_directory(self) -> None:
        """Create the directory holding a file-backed database."""
        path = self.database.url.database
        if path and path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
