"""
Block records for Blockwright.

This module defines the durable records (block instances and the links that
place them in documents) and the in-memory composition entry the engine hands
back to callers.
"""

from typing import Any, Dict, List, Literal, Optional
from datetime import datetime
from pydantic import BaseModel, Field, model_validator

from .block_types import BlockTypeId


class BlockInstance(BaseModel):
    """
    One concrete piece of content of a given type, shareable across documents.
    """

    id: str = Field(
        ...,
        description="Globally unique identifier assigned at creation"
    )

    block_type: BlockTypeId = Field(
        ...,
        description="The type this block's payload conforms to"
    )

    payload: Dict[str, Any] = Field(
        default_factory=dict,
        description="Type-specific content, keyed with the payload's camelCase field names"
    )

    owner_user_id: str = Field(
        ...,
        description="The user who owns and may edit this block"
    )

    name: Optional[str] = Field(
        None,
        description="Optional user-supplied label for the block"
    )

    created_at: datetime = Field(
        default_factory=datetime.now,
        description="Timestamp of creation"
    )

    updated_at: datetime = Field(
        default_factory=datetime.now,
        description="Timestamp of the last payload change"
    )

    duplicated_from: Optional[str] = Field(
        None,
        description="Id of the block this one was copied from, if any"
    )

    duplicated_at: Optional[datetime] = Field(
        None,
        description="Timestamp of the copy, set together with duplicated_from"
    )


class DocumentBlockLink(BaseModel):
    """
    Places a block instance at a position inside one document.
    """

    document_id: str = Field(
        ...,
        description="The document owning this link"
    )

    block_id: str = Field(
        ...,
        description="The linked block instance"
    )

    position: int = Field(
        ...,
        ge=0,
        description="Zero-based position; dense per document"
    )


class CompositionEntry(BaseModel):
    """
    A link joined with its block's type, as held in a document's composition.
    """

    block_id: str = Field(
        ...,
        description="The linked block instance"
    )

    block_type: BlockTypeId = Field(
        ...,
        description="Type of the linked block"
    )

    position: int = Field(
        ...,
        ge=0,
        description="Zero-based position inside the document"
    )

    pending: bool = Field(
        False,
        description="True while the durable write for this entry is unconfirmed"
    )

    def as_tuple(self):
        """Return the ``(block_id, block_type, position)`` view of the entry."""
        return self.block_id, self.block_type, self.position


class BlockQuery(BaseModel):
    """
    Filters, ordering and paging for a user's block library.
    """

    types: Optional[List[BlockTypeId]] = Field(
        None,
        description="Only blocks of these types; all types when omitted"
    )

    search: Optional[str] = Field(
        None,
        description="Case-insensitive substring matched against the name and the payload"
    )

    created_after: Optional[datetime] = Field(None, description="Inclusive lower bound on created_at")
    created_before: Optional[datetime] = Field(None, description="Inclusive upper bound on created_at")
    updated_after: Optional[datetime] = Field(None, description="Inclusive lower bound on updated_at")
    updated_before: Optional[datetime] = Field(None, description="Inclusive upper bound on updated_at")

    order_by: Literal["created_at", "updated_at", "name", "block_type"] = Field(
        "created_at",
        description="Sort column"
    )

    order_direction: Literal["asc", "desc"] = Field(
        "desc",
        description="Sort direction"
    )

    page: Optional[int] = Field(
        None,
        ge=1,
        description="1-based page number; every match is returned when omitted"
    )

    limit: int = Field(
        20,
        ge=1,
        description="Page size, used together with page"
    )

    @model_validator(mode="after")
    def _blank_search_matches_all(self):
        if self.search is not None and not self.search.strip():
            self.search = None
        return self

    @property
    def offset(self) -> int:
        return ((self.page or 1) - 1) * self.limit


class BlockPage(BaseModel):
    """
    One page of a user's block library.
    """

    blocks: List[BlockInstance] = Field(
        default_factory=list,
        description="Blocks on this page, in the requested order"
    )

    total: int = Field(
        0,
        ge=0,
        description="Number of blocks matching the filters across all pages"
    )


class BlockUsage(BaseModel):
    """
    Where a block is used.
    """

    block_id: str = Field(..., description="The block inspected")
    count: int = Field(0, ge=0, description="Number of documents linking the block")
    document_ids: List[str] = Field(
        default_factory=list,
        description="The linking documents, sorted by id"
    )
