"""
In-memory persistence gateway for Blockwright.

This module provides a dict-backed gateway for tests and demos. It applies
the same position shifts as the DuckDB gateway and can be told to fail or to
stall specific operations, which makes the engine's failure paths testable.
"""

import asyncio
import json
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from ..composition import positions
from ..errors import ConflictError, DatabaseError, NotFoundError
from ..models import (
    BlockInstance,
    BlockPage,
    BlockQuery,
    BlockTypeId,
    BlockUsage,
    CompositionEntry,
    DocumentBlockLink,
)
from .gateway import PersistenceGateway


class InMemoryGateway(PersistenceGateway):
    """
    Gateway keeping block instances and document links in dictionaries.
    """

    def __init__(self, latency: float = 0.0):
        """
        Initialize the gateway.

        Args:
            latency: Seconds every operation waits before running
        """
        self.latency = latency
        self.blocks: Dict[str, BlockInstance] = {}
        self.links: Dict[str, List[DocumentBlockLink]] = {}
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self._failures: Dict[str, List[Exception]] = {}

    def fail_next(self, operation: str, error: Optional[Exception] = None) -> None:
        """
        Make the next call to ``operation`` raise ``error`` (a DatabaseError by default).

        Args:
            operation: Gateway method name, e.g. "reorder"
            error: Exception to raise instead of the default
        """
        self._failures.setdefault(operation, []).append(
            error or DatabaseError(f"Simulated failure in {operation}")
        )

    def document_positions(self, document_id: str) -> List[Tuple[str, int]]:
        """Return ``(block_id, position)`` pairs as stored, ordered by position."""
        return [
            (link.block_id, link.position)
            for link in positions.sort_by_position(self.links.get(document_id, []))
        ]

    async def _enter(self, operation: str, *args: Any) -> None:
        self.calls.append((operation, args))
        if self.latency:
            await asyncio.sleep(self.latency)
        pending = self._failures.get(operation)
        if pending:
            error = pending.pop(0)
            logging.debug(f"InMemoryGateway: injecting failure into {operation}")
            raise error

    def _require_block(self, block_id: str) -> BlockInstance:
        block = self.blocks.get(block_id)
        if block is None:
            raise NotFoundError("Block not found", {"block_id": block_id})
        return block

    async def create_block_instance(
        self,
        block_type: BlockTypeId,
        payload: Dict[str, Any],
        owner_user_id: str,
        name: Optional[str] = None,
        duplicated_from: Optional[str] = None
    ) -> BlockInstance:
        await self._enter("create_block_instance", block_type, owner_user_id)
        now = datetime.now()
        block = BlockInstance(
            id=str(uuid.uuid4()),
            block_type=block_type,
            payload=dict(payload),
            owner_user_id=owner_user_id,
            name=name,
            created_at=now,
            updated_at=now,
            duplicated_from=duplicated_from,
            duplicated_at=now if duplicated_from else None
        )
        self.blocks[block.id] = block
        return block.model_copy(deep=True)

    async def get_block_instance(self, block_id: str) -> BlockInstance:
        await self._enter("get_block_instance", block_id)
        return self._require_block(block_id).model_copy(deep=True)

    async def update_block_instance(self, block_id: str, payload: Dict[str, Any]) -> BlockInstance:
        await self._enter("update_block_instance", block_id)
        block = self._require_block(block_id)
        block.payload = dict(payload)
        block.updated_at = datetime.now()
        return block.model_copy(deep=True)

    async def delete_block_instance(self, block_id: str) -> None:
        await self._enter("delete_block_instance", block_id)
        self._require_block(block_id)
        count = self._count_references(block_id)
        if count:
            raise ConflictError(
                "Cannot delete block that is being used in resumes",
                {"resume_count": count}
            )
        del self.blocks[block_id]

    async def link_block_to_document(self, document_id: str, block_id: str, position: int) -> None:
        await self._enter("link_block_to_document", document_id, block_id, position)
        links = self.links.setdefault(document_id, [])
        if positions.find_by_block(links, block_id) is not None:
            raise ConflictError("Block already exists in this resume", {"block_id": block_id})
        link = DocumentBlockLink(document_id=document_id, block_id=block_id, position=position)
        self.links[document_id] = positions.insert_at(links, link, position)

    async def unlink_block_from_document(self, document_id: str, block_id: str) -> None:
        await self._enter("unlink_block_from_document", document_id, block_id)
        links = self.links.get(document_id, [])
        positions.remove_block(links, block_id)

    async def reorder(self, document_id: str, block_id: str, from_position: int, to_position: int) -> None:
        await self._enter("reorder", document_id, block_id, from_position, to_position)
        links = self.links.get(document_id, [])
        link = positions.find_by_block(links, block_id)
        if link is None:
            raise NotFoundError("Block not found in this resume", {"block_id": block_id})
        if link.position != from_position:
            raise ConflictError(
                f"Stored position {link.position} does not match expected {from_position}",
                {"block_id": block_id}
            )
        positions.move_block(links, block_id, to_position)
        self.links[document_id] = positions.sort_by_position(links)

    async def count_documents_referencing(self, block_id: str) -> int:
        await self._enter("count_documents_referencing", block_id)
        return self._count_references(block_id)

    async def list_document_blocks(self, document_id: str) -> List[CompositionEntry]:
        await self._enter("list_document_blocks", document_id)
        entries = []
        for link in positions.sort_by_position(self.links.get(document_id, [])):
            block = self._require_block(link.block_id)
            entries.append(CompositionEntry(
                block_id=link.block_id,
                block_type=block.block_type,
                position=link.position
            ))
        return entries

    async def list_blocks_by_user(self, owner_user_id: str, query: Optional[BlockQuery] = None) -> BlockPage:
        await self._enter("list_blocks_by_user", owner_user_id)
        query = query or BlockQuery()

        matches = [
            block for block in self.blocks.values()
            if block.owner_user_id == owner_user_id and _matches(block, query)
        ]
        matches.sort(key=lambda block: (_sort_value(block, query.order_by), block.id))
        if query.order_direction == "desc":
            matches.reverse()

        page = matches
        if query.page is not None:
            page = matches[query.offset:query.offset + query.limit]
        return BlockPage(blocks=[block.model_copy(deep=True) for block in page], total=len(matches))

    async def get_block_usage(self, block_id: str) -> BlockUsage:
        await self._enter("get_block_usage", block_id)
        document_ids = sorted(
            document_id for document_id, links in self.links.items()
            if positions.find_by_block(links, block_id) is not None
        )
        return BlockUsage(block_id=block_id, count=len(document_ids), document_ids=document_ids)

    def _count_references(self, block_id: str) -> int:
        return sum(
            1 for links in self.links.values()
            if positions.find_by_block(links, block_id) is not None
        )


def _matches(block: BlockInstance, query: BlockQuery) -> bool:
    if query.types and block.block_type not in query.types:
        return False
    if query.search:
        term = query.search.lower()
        text = json.dumps(block.payload, sort_keys=True).lower()
        if term not in (block.name or "").lower() and term not in text:
            return False
    if query.created_after and block.created_at < query.created_after:
        return False
    if query.created_before and block.created_at > query.created_before:
        return False
    if query.updated_after and block.updated_at < query.updated_after:
        return False
    if query.updated_before and block.updated_at > query.updated_before:
        return False
    return True


def _sort_value(block: BlockInstance, order_by: str) -> Any:
    if order_by == "name":
        return block.name or ""
    if order_by == "block_type":
        return block.block_type.value
    return getattr(block, order_by)
