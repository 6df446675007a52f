"""
Composition engine for Blockwright.

The engine owns the in-memory ordering of every document it has touched and
writes each change through to a persistence gateway. Changes are applied to
memory first; the gateway call follows. A failed gateway call is reported to
the caller and leaves the in-memory change in place, with the affected
entries still marked ``pending`` and the document marked dirty until
``reconcile`` reloads it from storage.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Dict, Iterable, Iterator, List, Optional, Set, Tuple

from ..config import config
from ..database.gateway import PersistenceGateway
from ..errors import (
    BlockError,
    BlockValidationError,
    ConfigurationError,
    ConflictError,
    DatabaseError,
    LimitExceededError,
    NotFoundError,
    UnauthorizedError,
)
from ..models import BlockInstance, BlockPage, BlockQuery, BlockTypeId, BlockUsage, CompositionEntry
from ..registry import TypeRegistry
from . import positions
from .policy import EditOutcome, SharedBlockDecision, SharedBlockPolicy, duplicate_name


OVERLAP_POLICIES = ("queue", "reject")


class Composition:
    """
    The ordered, in-memory view of one document's blocks.
    """

    def __init__(self, document_id: str, entries: Iterable[CompositionEntry] = ()):
        self.document_id = document_id
        self.entries: List[CompositionEntry] = positions.sort_by_position(entries)
        self.dirty = False

    def __len__(self) -> int:
        return len(self.entries)

    def find(self, block_id: str) -> Optional[CompositionEntry]:
        return positions.find_by_block(self.entries, block_id)

    def count_type(self, block_type: BlockTypeId) -> int:
        return sum(1 for entry in self.entries if entry.block_type == block_type)

    def position_map(self) -> Dict[str, int]:
        return {entry.block_id: entry.position for entry in self.entries}

    def snapshot(self) -> List[CompositionEntry]:
        """Return copies of the entries, ordered by position."""
        return [entry.model_copy() for entry in positions.sort_by_position(self.entries)]


class CompositionView:
    """
    Lazy, restartable view of a document's ordering.

    Each iteration walks the ordering as it stands when iteration starts and
    yields ``(block_id, block_type, position)`` tuples.
    """

    def __init__(self, engine: "CompositionEngine", document_id: str):
        self._engine = engine
        self.document_id = document_id

    def __iter__(self) -> Iterator[Tuple[str, BlockTypeId, int]]:
        composition = self._engine._compositions.get(self.document_id)
        if composition is None:
            return
        for entry in composition.snapshot():
            yield entry.as_tuple()

    def __len__(self) -> int:
        composition = self._engine._compositions.get(self.document_id)
        return len(composition) if composition else 0


class CompositionEngine:
    """
    Maintains the ordered block list of each document.
    """

    def __init__(
        self,
        registry: TypeRegistry,
        gateway: PersistenceGateway,
        policy: Optional[SharedBlockPolicy] = None,
        timeout: Optional[float] = None,
        max_blocks_per_document: Optional[int] = None,
        overlap_policy: Optional[str] = None,
        required_types: Iterable[BlockTypeId] = BlockTypeId
    ):
        """
        Initialize the composition engine.

        Args:
            registry: Fully built block type registry
            gateway: Persistence gateway changes are written through to
            policy: Shared-block policy consulted before edits (defaults to config)
            timeout: Seconds allowed per gateway call (defaults to config value)
            max_blocks_per_document: Document size cap (defaults to config value)
            overlap_policy: "queue" or "reject" for overlapping operations on
                one document (defaults to config value)
            required_types: Block types that must be registered before serving

        Raises:
            ConfigurationError: If a required type is missing or a setting is invalid
        """
        check = registry.all_registered(required_types)
        if not check.ok:
            missing = ", ".join(str(type_id) for type_id in check.missing)
            raise ConfigurationError(f"Block types not registered: {missing}", check.missing)

        self.registry = registry
        self.gateway = gateway
        self.policy = policy or SharedBlockPolicy()
        self.timeout = timeout if timeout is not None else config.gateway_timeout
        self.max_blocks_per_document = max_blocks_per_document or config.max_blocks_per_document
        self.overlap_policy = overlap_policy or config.overlap_policy
        if self.overlap_policy not in OVERLAP_POLICIES:
            raise ConfigurationError(f"Unknown overlap policy: {self.overlap_policy}")

        self._compositions: Dict[str, Composition] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}
        self._in_flight: Set[asyncio.Future] = set()

    # Gateway plumbing

    async def _call_gateway(self, operation: str, func: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        """
        Run one gateway call under the configured timeout.

        The call runs in its own task and is shielded from both the timeout
        and the caller: once issued, a write runs to completion or failure on
        its own even when nobody waits for it any more.
        """
        task = asyncio.ensure_future(func(*args))
        self._in_flight.add(task)
        task.add_done_callback(self._write_finished)

        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logging.warning(f"Gateway call {operation} timed out after {self.timeout}s")
            raise DatabaseError(
                f"Storage did not respond in time ({operation})",
                {"operation": operation, "timeout": self.timeout}
            ) from e
        except BlockError:
            raise
        except Exception as e:
            logging.exception(f"Unexpected error in gateway call {operation}")
            raise DatabaseError(f"Unexpected storage error ({operation})", {"operation": operation}) from e

    def _write_finished(self, task: asyncio.Future) -> None:
        self._in_flight.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logging.debug(f"Gateway call finished with error: {task.exception()!r}")

    async def _write_through(
        self,
        composition: Composition,
        affected: List[CompositionEntry],
        operation: str,
        func: Callable[..., Awaitable[Any]],
        *args: Any
    ) -> None:
        for entry in affected:
            entry.pending = True

        try:
            await self._call_gateway(operation, func, *args)
        except BlockError as e:
            composition.dirty = True
            logging.warning(
                f"Durable write {operation} failed for document {composition.document_id}; "
                f"keeping optimistic state until reconcile: {e}"
            )
            raise

        for entry in affected:
            entry.pending = False

    @staticmethod
    def _changed_entries(composition: Composition, before: Dict[str, int]) -> List[CompositionEntry]:
        return [
            entry for entry in composition.entries
            if before.get(entry.block_id) != entry.position
        ]

    # Per-document serialization

    @asynccontextmanager
    async def _exclusive(self, document_id: str):
        lock = self._locks.setdefault(document_id, asyncio.Lock())
        if self.overlap_policy == "reject" and lock.locked():
            raise ConflictError(
                f"Another operation on document {document_id} is still in progress",
                {"document_id": document_id}
            )

        # Locks live only while someone holds or waits for them
        self._lock_users[document_id] = self._lock_users.get(document_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[document_id] -= 1
            if not self._lock_users[document_id]:
                del self._lock_users[document_id]
                del self._locks[document_id]

    async def _ensure_loaded(self, document_id: str) -> Composition:
        composition = self._compositions.get(document_id)
        if composition is None:
            entries = await self._call_gateway(
                "list_document_blocks", self.gateway.list_document_blocks, document_id
            )
            composition = Composition(document_id, entries)
            if not positions.is_dense(entry.position for entry in composition.entries):
                logging.warning(f"Stored positions for document {document_id} are not dense")
            self._compositions[document_id] = composition
            logging.debug(f"Loaded document {document_id} with {len(composition)} blocks")
        return composition

    # Public operations

    async def load(self, document_id: str) -> List[CompositionEntry]:
        """
        Make sure a document's ordering is in memory.

        Returns:
            The document's entries ordered by position
        """
        async with self._exclusive(document_id):
            composition = await self._ensure_loaded(document_id)
            return composition.snapshot()

    async def reconcile(self, document_id: str) -> List[CompositionEntry]:
        """
        Discard the in-memory ordering and reload it from storage.

        Returns:
            The stored entries ordered by position
        """
        async with self._exclusive(document_id):
            self._compositions.pop(document_id, None)
            composition = await self._ensure_loaded(document_id)
            logging.info(f"Reconciled document {document_id} from storage")
            return composition.snapshot()

    async def unload(self, document_id: str) -> bool:
        """
        Drop a document's in-memory ordering.

        Waits for in-flight operations on the document first. A dirty
        document loses its unconfirmed changes, as with ``reconcile``.

        Returns:
            True if the document was loaded
        """
        async with self._exclusive(document_id):
            composition = self._compositions.pop(document_id, None)
        if composition is None:
            return False
        if composition.dirty:
            logging.warning(f"Unloaded document {document_id} with unconfirmed changes")
        logging.debug(f"Unloaded document {document_id}")
        return True

    def is_dirty(self, document_id: str) -> bool:
        composition = self._compositions.get(document_id)
        return bool(composition and composition.dirty)

    def list(self, document_id: str) -> CompositionView:
        """
        Get a view of the document's ordering.

        The view never blocks on in-flight writes and reflects optimistic
        changes immediately.
        """
        return CompositionView(self, document_id)

    async def add(
        self,
        document_id: str,
        block_id: str,
        block_type: BlockTypeId,
        at: Optional[int] = None
    ) -> List[CompositionEntry]:
        """
        Link a block into a document.

        Args:
            document_id: The document to change
            block_id: The block to link
            block_type: The block's type
            at: Position to insert at; appends when omitted

        Returns:
            The document's updated entries ordered by position

        Raises:
            TypeNotRegisteredError: If the type is not registered
            ConflictError: If the block is already in the document
            LimitExceededError: If the type's or the document's cap is reached
            InvalidArgumentError: If ``at`` is outside ``[0, n]``
            DatabaseError: If the durable write fails (memory keeps the change)
        """
        descriptor = self.registry.require(block_type)

        async with self._exclusive(document_id):
            composition = await self._ensure_loaded(document_id)

            if composition.find(block_id) is not None:
                raise ConflictError("Block already exists in this resume", {"block_id": block_id})

            if descriptor.max_instances is not None and composition.count_type(descriptor.id) >= descriptor.max_instances:
                raise LimitExceededError(
                    f"You can only have {descriptor.max_instances} {descriptor.display_name} block(s)",
                    limit=descriptor.max_instances,
                    details={"type": descriptor.id.value}
                )

            if len(composition) >= self.max_blocks_per_document:
                raise LimitExceededError(
                    f"A resume can hold at most {self.max_blocks_per_document} blocks",
                    limit=self.max_blocks_per_document
                )

            before = composition.position_map()
            entry = CompositionEntry(block_id=block_id, block_type=descriptor.id, position=0)
            composition.entries = positions.insert_at(composition.entries, entry, at)
            logging.debug(f"Added block {block_id} ({descriptor.id}) to {document_id} at {entry.position}")

            await self._write_through(
                composition,
                self._changed_entries(composition, before),
                "link_block_to_document",
                self.gateway.link_block_to_document,
                document_id, block_id, entry.position
            )
            return composition.snapshot()

    async def remove(self, document_id: str, block_id: str) -> List[CompositionEntry]:
        """
        Unlink a block from a document and close the gap.

        The block instance itself is kept.

        Raises:
            NotFoundError: If the document does not contain the block
            DatabaseError: If the durable write fails (memory keeps the change)
        """
        async with self._exclusive(document_id):
            composition = await self._ensure_loaded(document_id)

            before = composition.position_map()
            removed = positions.remove_block(composition.entries, block_id)
            logging.debug(f"Removed block {block_id} from {document_id} at {removed.position}")

            await self._write_through(
                composition,
                self._changed_entries(composition, before),
                "unlink_block_from_document",
                self.gateway.unlink_block_from_document,
                document_id, block_id
            )
            return composition.snapshot()

    async def move(self, document_id: str, block_id: str, to: int) -> List[CompositionEntry]:
        """
        Move a block to another position within its document.

        Moving a block onto its current position changes nothing and does not
        touch storage.

        Raises:
            NotFoundError: If the document does not contain the block
            InvalidArgumentError: If ``to`` is outside ``[0, n-1]``
            DatabaseError: If the durable write fails (memory keeps the change)
        """
        async with self._exclusive(document_id):
            composition = await self._ensure_loaded(document_id)

            entry = composition.find(block_id)
            if entry is None:
                raise NotFoundError(f"Block {block_id} is not part of this document", {"block_id": block_id})
            from_position = entry.position

            before = composition.position_map()
            if not positions.move_block(composition.entries, block_id, to):
                return composition.snapshot()

            composition.entries = positions.sort_by_position(composition.entries)
            logging.debug(f"Moved block {block_id} in {document_id} from {from_position} to {to}")

            await self._write_through(
                composition,
                self._changed_entries(composition, before),
                "reorder",
                self.gateway.reorder,
                document_id, block_id, from_position, to
            )
            return composition.snapshot()

    async def create_block(
        self,
        block_type: BlockTypeId,
        owner_user_id: str,
        name: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None
    ) -> BlockInstance:
        """
        Create a block instance, starting from the type's default payload.

        Args:
            block_type: Type of the new block
            owner_user_id: The owning user
            name: Optional label
            payload: Initial payload; validated when given

        Raises:
            TypeNotRegisteredError: If the type is not registered
            BlockValidationError: If an explicit payload is invalid
        """
        descriptor = self.registry.require(block_type)
        if payload is None:
            payload = descriptor.create_default()
        else:
            result = descriptor.validate(payload)
            if not result:
                raise BlockValidationError(f"Invalid {descriptor.display_name} block", result.errors)

        block = await self._call_gateway(
            "create_block_instance", self.gateway.create_block_instance,
            descriptor.id, payload, owner_user_id, name
        )
        logging.info(f"Created {descriptor.id} block {block.id} for user {owner_user_id}")
        return block

    async def delete_block(self, block_id: str) -> None:
        """
        Delete a block instance that no document uses.

        Raises:
            ConflictError: If any document still links the block
        """
        resume_count = await self._call_gateway(
            "count_documents_referencing", self.gateway.count_documents_referencing, block_id
        )
        if resume_count > 0:
            raise ConflictError(
                "Cannot delete block that is being used in resumes",
                {"resume_count": resume_count}
            )

        await self._call_gateway("delete_block_instance", self.gateway.delete_block_instance, block_id)
        logging.info(f"Deleted block {block_id}")

    async def list_user_blocks(self, owner_user_id: str, query: Optional[BlockQuery] = None) -> BlockPage:
        """
        List the blocks a user owns, for picking blocks to reuse.

        Args:
            owner_user_id: The owning user
            query: Type, search and date filters, ordering and paging

        Returns:
            The requested page and the total number of matches
        """
        return await self._call_gateway(
            "list_blocks_by_user", self.gateway.list_blocks_by_user, owner_user_id, query
        )

    async def block_usage(self, block_id: str) -> BlockUsage:
        """Report which documents link the block."""
        return await self._call_gateway("get_block_usage", self.gateway.get_block_usage, block_id)

    async def edit(
        self,
        document_id: str,
        block_id: str,
        payload: Dict[str, Any],
        user_id: str
    ) -> EditOutcome:
        """
        Replace a block's payload from within a document.

        When other documents also link the block, the shared-block policy is
        awaited before anything is written.

        Args:
            document_id: The document the edit is made from
            block_id: The block to edit
            payload: The new payload
            user_id: The editing user

        Returns:
            EditOutcome naming the decision and the block that was changed

        Raises:
            NotFoundError: If the document does not contain the block
            UnauthorizedError: If the user does not own the block
            BlockValidationError: If the payload is invalid
        """
        async with self._exclusive(document_id):
            composition = await self._ensure_loaded(document_id)
            entry = composition.find(block_id)
            if entry is None:
                raise NotFoundError(f"Block {block_id} is not part of this document", {"block_id": block_id})

            block = await self._call_gateway("get_block_instance", self.gateway.get_block_instance, block_id)
            if block.owner_user_id != user_id:
                raise UnauthorizedError("Cannot edit a block owned by another user", {"block_id": block_id})

            descriptor = self.registry.require(block.block_type)
            result = descriptor.validate(payload)
            if not result:
                raise BlockValidationError(f"Invalid {descriptor.display_name} block", result.errors)

            resume_count = await self._call_gateway(
                "count_documents_referencing", self.gateway.count_documents_referencing, block_id
            )
            decision = await self.policy.decide(block_id, resume_count)

            if decision == SharedBlockDecision.CANCEL:
                logging.info(f"Edit of shared block {block_id} cancelled")
                return EditOutcome(decision, None, resume_count)

            if decision == SharedBlockDecision.MODIFY:
                updated = await self._call_gateway(
                    "update_block_instance", self.gateway.update_block_instance, block_id, payload
                )
                return EditOutcome(decision, updated, resume_count)

            duplicate = await self._call_gateway(
                "create_block_instance", self.gateway.create_block_instance,
                block.block_type, block.payload, user_id, duplicate_name(block.name), block_id
            )
            position = entry.position
            entry.block_id = duplicate.id

            # Storage swaps the links in two steps; the position nets out unchanged
            await self._write_through(
                composition, [entry], "unlink_block_from_document",
                self.gateway.unlink_block_from_document, document_id, block_id
            )
            await self._write_through(
                composition, [entry], "link_block_to_document",
                self.gateway.link_block_to_document, document_id, duplicate.id, position
            )

            updated = await self._call_gateway(
                "update_block_instance", self.gateway.update_block_instance, duplicate.id, payload
            )
            logging.info(f"Duplicated shared block {block_id} as {duplicate.id} for document {document_id}")
            return EditOutcome(decision, updated, resume_count)
