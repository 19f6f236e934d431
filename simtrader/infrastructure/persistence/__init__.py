"""Persistence - snapshot JSON local + gateway SQL."""
from simtrader.infrastructure.persistence.database import Base, DatabaseManager
from simtrader.infrastructure.persistence.snapshot_store import JsonSnapshotStore
from simtrader.infrastructure.persistence.sql_gateway import SqlPersistenceGateway

__all__ = [
    "Base",
    "DatabaseManager",
    "JsonSnapshotStore",
    "SqlPersistenceGateway",
]
