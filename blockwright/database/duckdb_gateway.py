"""
DuckDB-backed persistence gateway.

Adapts the synchronous ``DatabaseManager`` to the async gateway interface.
Calls run in a worker thread, one at a time, so the event loop keeps serving
in-memory reads while a write is in flight.
"""

import asyncio
import logging
import threading
from typing import Any, Callable, Dict, List, Optional

import duckdb

from ..errors import DatabaseError, NotFoundError
from ..models import BlockInstance, BlockPage, BlockQuery, BlockTypeId, BlockUsage, CompositionEntry
from .gateway import PersistenceGateway
from .manager import DatabaseManager


class DuckDBGateway(PersistenceGateway):
    """
    Persistence gateway storing blocks in a DuckDB database.
    """

    def __init__(self, database: DatabaseManager):
        """
        Initialize the gateway.

        Args:
            database: A connected, initialized database manager
        """
        self.db = database
        self._lock = threading.Lock()

    async def _run(self, operation: str, func: Callable[..., Any], *args: Any) -> Any:
        def call():
            with self._lock:
                return func(*args)

        try:
            return await asyncio.to_thread(call)
        except duckdb.Error as e:
            logging.error(f"DuckDB failure during {operation}: {e}")
            raise DatabaseError(f"Failed to {operation.replace('_', ' ')}", {"error": str(e)}) from e

    async def create_block_instance(
        self,
        block_type: BlockTypeId,
        payload: Dict[str, Any],
        owner_user_id: str,
        name: Optional[str] = None,
        duplicated_from: Optional[str] = None
    ) -> BlockInstance:
        return await self._run(
            "create_block_instance", self.db.create_block_instance,
            block_type, payload, owner_user_id, name, duplicated_from
        )

    async def get_block_instance(self, block_id: str) -> BlockInstance:
        block = await self._run("get_block_instance", self.db.get_block_instance, block_id)
        if block is None:
            raise NotFoundError("Block not found", {"block_id": block_id})
        return block

    async def update_block_instance(self, block_id: str, payload: Dict[str, Any]) -> BlockInstance:
        return await self._run("update_block_instance", self.db.update_block_instance, block_id, payload)

    async def delete_block_instance(self, block_id: str) -> None:
        await self._run("delete_block_instance", self.db.delete_block_instance, block_id)

    async def link_block_to_document(self, document_id: str, block_id: str, position: int) -> None:
        await self._run("link_block_to_document", self.db.link_block, document_id, block_id, position)

    async def unlink_block_from_document(self, document_id: str, block_id: str) -> None:
        await self._run("unlink_block_from_document", self.db.unlink_block, document_id, block_id)

    async def reorder(self, document_id: str, block_id: str, from_position: int, to_position: int) -> None:
        await self._run(
            "reorder", self.db.reorder_block, document_id, block_id, from_position, to_position
        )

    async def count_documents_referencing(self, block_id: str) -> int:
        return await self._run("count_documents_referencing", self.db.count_documents_referencing, block_id)

    async def list_document_blocks(self, document_id: str) -> List[CompositionEntry]:
        return await self._run("list_document_blocks", self.db.list_document_blocks, document_id)

    async def list_blocks_by_user(self, owner_user_id: str, query: Optional[BlockQuery] = None) -> BlockPage:
        return await self._run("list_blocks_by_user", self.db.list_blocks_by_user, owner_user_id, query)

    async def get_block_usage(self, block_id: str) -> BlockUsage:
        return await self._run("get_block_usage", self.db.get_block_usage, block_id)
