"""Application ports - interfaces hacia infraestructura."""
from simtrader.application.ports.persistence_gateway import IPersistenceGateway
from simtrader.application.ports.snapshot_store import ISnapshotStore

__all__ = ["IPersistenceGateway", "ISnapshotStore"]
