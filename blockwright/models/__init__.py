"""Data models for Blockwright."""

from .block_types import BlockTypeId, BlockCategory
from .blocks import BlockInstance, DocumentBlockLink, CompositionEntry, BlockQuery, BlockPage, BlockUsage

__all__ = [
    "BlockTypeId",
    "BlockCategory",
    "BlockInstance",
    "DocumentBlockLink",
    "CompositionEntry",
    "BlockQuery",
    "BlockPage",
    "BlockUsage"
]
