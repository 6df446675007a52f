"""
Database manager for Blockwright.

This module handles all durable block storage using DuckDB: block instances
and the document-to-block link table. Position changes are applied as
bounded-range UPDATEs inside a single transaction.
"""

import duckdb
import json
import logging
import uuid
from contextlib import contextmanager
from typing import Any, Dict, List, Optional
from datetime import datetime

from ..errors import ConflictError, InvalidArgumentError, NotFoundError
from ..models import BlockInstance, BlockPage, BlockQuery, BlockTypeId, BlockUsage, CompositionEntry


BLOCK_COLUMNS = "id, block_type, name, payload, owner_user_id, created_at, updated_at, duplicated_from, duplicated_at"

# Sort keys accepted by list_blocks_by_user, mapped to SQL expressions
ORDER_COLUMNS = {
    "created_at": "created_at",
    "updated_at": "updated_at",
    "name": "COALESCE(name, '')",
    "block_type": "block_type",
}


class DatabaseManager:
    """
    Manages the DuckDB database holding block instances and document links.
    """

    def __init__(self, db_path: str = "blockwright.db"):
        """
        Initialize the database manager.

        Args:
            db_path: Path to the DuckDB database file (":memory:" for a throwaway database)
        """
        self.db_path = db_path
        self.connection = None

    def connect(self):
        """Establish connection to the database."""
        self.connection = duckdb.connect(self.db_path)

    def disconnect(self):
        """Close the database connection."""
        if self.connection:
            self.connection.close()
            self.connection = None

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.disconnect()

    def _require_connection(self):
        if not self.connection:
            raise RuntimeError("Database connection not established")
        return self.connection

    @contextmanager
    def _transaction(self):
        connection = self._require_connection()
        connection.begin()
        try:
            yield connection
        except BaseException:
            connection.rollback()
            raise
        else:
            connection.commit()

    def initialize_database(self):
        """
        Create all necessary tables if they don't exist.
        """
        connection = self._require_connection()

        connection.execute("""
            CREATE TABLE IF NOT EXISTS block_instances (
                id VARCHAR PRIMARY KEY,
                block_type VARCHAR NOT NULL,
                name VARCHAR,
                payload VARCHAR NOT NULL,
                owner_user_id VARCHAR NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                duplicated_from VARCHAR,
                duplicated_at TIMESTAMP
            )
        """)

        # Positions are kept dense per document by the shift logic below
        connection.execute("""
            CREATE TABLE IF NOT EXISTS document_blocks (
                document_id VARCHAR NOT NULL,
                block_id VARCHAR NOT NULL,
                position INTEGER NOT NULL,
                PRIMARY KEY (document_id, block_id)
            )
        """)

        logging.info(f"Database initialized at {self.db_path}")

    def _row_to_block(self, row) -> BlockInstance:
        return BlockInstance(
            id=row[0],
            block_type=row[1],
            name=row[2],
            payload=json.loads(row[3]),
            owner_user_id=row[4],
            created_at=row[5],
            updated_at=row[6],
            duplicated_from=row[7],
            duplicated_at=row[8]
        )

    def create_block_instance(
        self,
        block_type: BlockTypeId,
        payload: Dict[str, Any],
        owner_user_id: str,
        name: Optional[str] = None,
        duplicated_from: Optional[str] = None
    ) -> BlockInstance:
        """
        Insert a new block instance.

        Returns:
            The stored block instance
        """
        connection = self._require_connection()
        now = datetime.now()
        block_id = str(uuid.uuid4())
        duplicated_at = now if duplicated_from else None

        connection.execute(f"""
            INSERT INTO block_instances ({BLOCK_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, [
            block_id,
            BlockTypeId(block_type).value,
            name,
            json.dumps(payload, sort_keys=True),
            owner_user_id,
            now,
            now,
            duplicated_from,
            duplicated_at
        ])

        return BlockInstance(
            id=block_id,
            block_type=block_type,
            payload=payload,
            owner_user_id=owner_user_id,
            name=name,
            created_at=now,
            updated_at=now,
            duplicated_from=duplicated_from,
            duplicated_at=duplicated_at
        )

    def get_block_instance(self, block_id: str) -> Optional[BlockInstance]:
        """
        Retrieve a block instance by id.

        Returns:
            The block if found, None otherwise
        """
        connection = self._require_connection()

        result = connection.execute(f"""
            SELECT {BLOCK_COLUMNS}
            FROM block_instances
            WHERE id = ?
        """, [block_id]).fetchone()

        if result:
            return self._row_to_block(result)
        return None

    def update_block_instance(self, block_id: str, payload: Dict[str, Any]) -> BlockInstance:
        """
        Replace a block's payload.

        Raises:
            NotFoundError: If the block does not exist
        """
        with self._transaction() as connection:
            exists = connection.execute(
                "SELECT 1 FROM block_instances WHERE id = ?", [block_id]
            ).fetchone()
            if not exists:
                raise NotFoundError("Block not found", {"block_id": block_id})

            connection.execute("""
                UPDATE block_instances
                SET payload = ?, updated_at = ?
                WHERE id = ?
            """, [json.dumps(payload, sort_keys=True), datetime.now(), block_id])

        return self.get_block_instance(block_id)

    def delete_block_instance(self, block_id: str) -> None:
        """
        Delete a block instance that no document references.

        Raises:
            NotFoundError: If the block does not exist
            ConflictError: If any document still links the block
        """
        with self._transaction() as connection:
            exists = connection.execute(
                "SELECT 1 FROM block_instances WHERE id = ?", [block_id]
            ).fetchone()
            if not exists:
                raise NotFoundError("Block not found", {"block_id": block_id})

            count = self._count_references(connection, block_id)
            if count:
                raise ConflictError(
                    "Cannot delete block that is being used in resumes",
                    {"resume_count": count}
                )

            connection.execute("DELETE FROM block_instances WHERE id = ?", [block_id])

    def link_block(self, document_id: str, block_id: str, position: int) -> None:
        """
        Insert a link at ``position``, shifting later links up by one.

        Raises:
            ConflictError: If the document already links the block
            InvalidArgumentError: If ``position`` is outside ``[0, n]``
        """
        with self._transaction() as connection:
            existing = connection.execute("""
                SELECT 1 FROM document_blocks WHERE document_id = ? AND block_id = ?
            """, [document_id, block_id]).fetchone()
            if existing:
                raise ConflictError("Block already exists in this resume", {"block_id": block_id})

            size = self._document_size(connection, document_id)
            if not 0 <= position <= size:
                raise InvalidArgumentError(
                    f"Insert position {position} is out of range",
                    [f"position: must be between 0 and {size}"]
                )

            connection.execute("""
                UPDATE document_blocks
                SET position = position + 1
                WHERE document_id = ? AND position >= ?
            """, [document_id, position])

            connection.execute("""
                INSERT INTO document_blocks (document_id, block_id, position)
                VALUES (?, ?, ?)
            """, [document_id, block_id, position])

    def unlink_block(self, document_id: str, block_id: str) -> None:
        """
        Delete a link and shift later links down by one.

        Raises:
            NotFoundError: If the document does not link the block
        """
        with self._transaction() as connection:
            result = connection.execute("""
                SELECT position FROM document_blocks WHERE document_id = ? AND block_id = ?
            """, [document_id, block_id]).fetchone()
            if not result:
                raise NotFoundError("Block not found in this resume", {"block_id": block_id})
            removed_position = result[0]

            connection.execute("""
                DELETE FROM document_blocks WHERE document_id = ? AND block_id = ?
            """, [document_id, block_id])

            connection.execute("""
                UPDATE document_blocks
                SET position = position - 1
                WHERE document_id = ? AND position > ?
            """, [document_id, removed_position])

    def reorder_block(self, document_id: str, block_id: str, from_position: int, to_position: int) -> None:
        """
        Move a link with one bounded-range shift.

        Raises:
            NotFoundError: If the document does not link the block
            ConflictError: If the stored position differs from ``from_position``
            InvalidArgumentError: If ``to_position`` is outside ``[0, n-1]``
        """
        with self._transaction() as connection:
            result = connection.execute("""
                SELECT position FROM document_blocks WHERE document_id = ? AND block_id = ?
            """, [document_id, block_id]).fetchone()
            if not result:
                raise NotFoundError("Block not found in this resume", {"block_id": block_id})
            if result[0] != from_position:
                raise ConflictError(
                    f"Stored position {result[0]} does not match expected {from_position}",
                    {"block_id": block_id}
                )

            size = self._document_size(connection, document_id)
            if not 0 <= to_position < size:
                raise InvalidArgumentError(
                    f"Move target {to_position} is out of range",
                    [f"position: must be between 0 and {size - 1}"]
                )

            if to_position == from_position:
                return

            if to_position > from_position:
                connection.execute("""
                    UPDATE document_blocks
                    SET position = position - 1
                    WHERE document_id = ? AND position > ? AND position <= ?
                """, [document_id, from_position, to_position])
            else:
                connection.execute("""
                    UPDATE document_blocks
                    SET position = position + 1
                    WHERE document_id = ? AND position >= ? AND position < ?
                """, [document_id, to_position, from_position])

            connection.execute("""
                UPDATE document_blocks
                SET position = ?
                WHERE document_id = ? AND block_id = ?
            """, [to_position, document_id, block_id])

    def count_documents_referencing(self, block_id: str) -> int:
        return self._count_references(self._require_connection(), block_id)

    def list_document_blocks(self, document_id: str) -> List[CompositionEntry]:
        """
        List a document's links joined with their block types.

        Returns:
            Entries ordered by position
        """
        connection = self._require_connection()

        results = connection.execute("""
            SELECT db.block_id, bi.block_type, db.position
            FROM document_blocks db
            JOIN block_instances bi ON bi.id = db.block_id
            WHERE db.document_id = ?
            ORDER BY db.position
        """, [document_id]).fetchall()

        return [
            CompositionEntry(block_id=row[0], block_type=row[1], position=row[2])
            for row in results
        ]

    def list_blocks_by_user(self, owner_user_id: str, query: Optional[BlockQuery] = None) -> BlockPage:
        """
        List a user's block library with filters, ordering and paging.

        Args:
            owner_user_id: The owning user
            query: Filters, ordering and paging (defaults to newest first, unpaged)

        Returns:
            The requested page and the total number of matches
        """
        connection = self._require_connection()
        query = query or BlockQuery()

        conditions = ["owner_user_id = ?"]
        params: List[Any] = [owner_user_id]

        if query.types:
            conditions.append(f"block_type IN ({', '.join('?' for _ in query.types)})")
            params.extend(BlockTypeId(t).value for t in query.types)
        if query.search:
            pattern = f"%{_escape_like(query.search)}%"
            conditions.append("(COALESCE(name, '') ILIKE ? ESCAPE '\\' OR payload ILIKE ? ESCAPE '\\')")
            params.extend([pattern, pattern])
        for column, operator, value in (
            ("created_at", ">=", query.created_after),
            ("created_at", "<=", query.created_before),
            ("updated_at", ">=", query.updated_after),
            ("updated_at", "<=", query.updated_before),
        ):
            if value is not None:
                conditions.append(f"{column} {operator} ?")
                params.append(value)

        where = " AND ".join(conditions)
        total = connection.execute(
            f"SELECT COUNT(*) FROM block_instances WHERE {where}", params
        ).fetchone()[0]

        direction = "ASC" if query.order_direction == "asc" else "DESC"
        sql = f"""
            SELECT {BLOCK_COLUMNS}
            FROM block_instances
            WHERE {where}
            ORDER BY {ORDER_COLUMNS[query.order_by]} {direction}, id {direction}
        """
        page_params = list(params)
        if query.page is not None:
            sql += " LIMIT ? OFFSET ?"
            page_params.extend([query.limit, query.offset])

        rows = connection.execute(sql, page_params).fetchall()
        return BlockPage(blocks=[self._row_to_block(row) for row in rows], total=total)

    def get_block_usage(self, block_id: str) -> BlockUsage:
        """
        Report the documents linking a block.

        Returns:
            BlockUsage with the count and the sorted document ids
        """
        connection = self._require_connection()
        results = connection.execute("""
            SELECT DISTINCT document_id FROM document_blocks WHERE block_id = ? ORDER BY document_id
        """, [block_id]).fetchall()
        document_ids = [row[0] for row in results]
        return BlockUsage(block_id=block_id, count=len(document_ids), document_ids=document_ids)

    def document_positions(self, document_id: str) -> List[int]:
        """Return the stored positions of a document, ascending."""
        connection = self._require_connection()
        results = connection.execute("""
            SELECT position FROM document_blocks WHERE document_id = ? ORDER BY position
        """, [document_id]).fetchall()
        return [row[0] for row in results]

    def _document_size(self, connection, document_id: str) -> int:
        return connection.execute(
            "SELECT COUNT(*) FROM document_blocks WHERE document_id = ?", [document_id]
        ).fetchone()[0]

    def _count_references(self, connection, block_id: str) -> int:
        return connection.execute(
            "SELECT COUNT(DISTINCT document_id) FROM document_blocks WHERE block_id = ?", [block_id]
        ).fetchone()[0]


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
