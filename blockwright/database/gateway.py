"""
Persistence gateway interface for Blockwright.

This module defines the abstract, asynchronous storage interface the
composition engine writes through. Implementations must apply position
changes as bounded-range shifts, atomically, so a document's positions stay
dense in storage as well as in memory.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..models import BlockInstance, BlockPage, BlockQuery, BlockTypeId, BlockUsage, CompositionEntry


class PersistenceGateway(ABC):
    """
    Abstract base class for durable block storage.

    Every method may raise ``DatabaseError`` for storage failures; the
    documented ``NotFoundError`` / ``ConflictError`` cases are raised as such.
    """

    @abstractmethod
    async def create_block_instance(
        self,
        block_type: BlockTypeId,
        payload: Dict[str, Any],
        owner_user_id: str,
        name: Optional[str] = None,
        duplicated_from: Optional[str] = None
    ) -> BlockInstance:
        """
        Create and store a new block instance.

        When ``duplicated_from`` names the source block, ``duplicated_at`` is
        stamped with the creation time.

        Returns:
            The stored instance with its assigned id and timestamps
        """
        pass

    @abstractmethod
    async def get_block_instance(self, block_id: str) -> BlockInstance:
        """
        Fetch a block instance.

        Raises:
            NotFoundError: If the block does not exist
        """
        pass

    @abstractmethod
    async def update_block_instance(self, block_id: str, payload: Dict[str, Any]) -> BlockInstance:
        """
        Replace a block's payload and bump its ``updated_at``.

        Raises:
            NotFoundError: If the block does not exist
        """
        pass

    @abstractmethod
    async def delete_block_instance(self, block_id: str) -> None:
        """
        Delete a block instance that no document references.

        Raises:
            ConflictError: If at least one document still links the block
            NotFoundError: If the block does not exist
        """
        pass

    @abstractmethod
    async def link_block_to_document(self, document_id: str, block_id: str, position: int) -> None:
        """
        Insert a link at ``position``, shifting links at or after it up by one.
        """
        pass

    @abstractmethod
    async def unlink_block_from_document(self, document_id: str, block_id: str) -> None:
        """
        Delete a link and shift the links after it down by one.

        Raises:
            NotFoundError: If the document does not link the block
        """
        pass

    @abstractmethod
    async def reorder(self, document_id: str, block_id: str, from_position: int, to_position: int) -> None:
        """
        Move a link from ``from_position`` to ``to_position`` with one bounded-range shift.
        """
        pass

    @abstractmethod
    async def count_documents_referencing(self, block_id: str) -> int:
        """
        Count the documents that link the block.
        """
        pass

    @abstractmethod
    async def list_document_blocks(self, document_id: str) -> List[CompositionEntry]:
        """
        Load a document's links joined with their block types, ordered by position.
        """
        pass

    @abstractmethod
    async def list_blocks_by_user(self, owner_user_id: str, query: Optional[BlockQuery] = None) -> BlockPage:
        """
        List a user's block library.

        Args:
            owner_user_id: The owning user
            query: Filters, ordering and paging (defaults to newest first, unpaged)

        Returns:
            The requested page and the total number of matches
        """
        pass

    @abstractmethod
    async def get_block_usage(self, block_id: str) -> BlockUsage:
        """
        Report how many documents link the block, and which.
        """
        pass
