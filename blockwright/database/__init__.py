"""Persistence gateways and DuckDB storage."""

from .gateway import PersistenceGateway
from .manager import DatabaseManager
from .duckdb_gateway import DuckDBGateway
from .memory import InMemoryGateway

__all__ = ["PersistenceGateway", "DatabaseManager", "DuckDBGateway", "InMemoryGateway"]
