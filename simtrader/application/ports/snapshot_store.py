"""
SimTrader - Application Port: Snapshot Store
=============================================
Almacenamiento local del snapshot versionado (config + métricas).
Se lee una vez al arranque y se escribe en cada cambio.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from simtrader.application.dto.snapshot_dto import EngineSnapshot


class ISnapshotStore(ABC):

    @abstractmethod
    def load(self) -> Optional[EngineSnapshot]:
        """Snapshot guardado, o None si no existe / no es legible."""

    @abstractmethod
    def save(self, snapshot: EngineSnapshot) -> None:
        """Persiste el snapshot completo (reemplazo, no merge)."""
