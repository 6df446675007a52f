"""
Blockwright: typed content blocks composed into ordered resume documents.

Provides the block type registry, the ordered composition engine and the
persistence gateways it writes through to.
"""

__version__ = "0.1.0"
__author__ = "Blockwright Project"

# Import main components
from .models import BlockTypeId, BlockCategory, BlockInstance, DocumentBlockLink, CompositionEntry, BlockQuery, BlockPage
from .registry import TypeRegistry, TypeDescriptor, build_default_registry, resolve_command
from .composition import CompositionEngine, SharedBlockPolicy, SharedBlockDecision
from .database import PersistenceGateway, DatabaseManager, DuckDBGateway, InMemoryGateway

__all__ = [
    "BlockTypeId",
    "BlockCategory",
    "BlockInstance",
    "DocumentBlockLink",
    "CompositionEntry",
    "BlockQuery",
    "BlockPage",
    "TypeRegistry",
    "TypeDescriptor",
    "build_default_registry",
    "resolve_command",
    "CompositionEngine",
    "SharedBlockPolicy",
    "SharedBlockDecision",
    "PersistenceGateway",
    "DatabaseManager",
    "DuckDBGateway",
    "InMemoryGateway"
]
