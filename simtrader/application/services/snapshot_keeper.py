"""
SimTrader - Snapshot Keeper
============================
Continuidad entre reinicios: configuración del motor + métricas del
Performance Ledger se leen UNA vez al arranque y se escriben en cada
cambio.

    arranque:   store.load() ──▸ engine.replace_config() + ledger.load_metrics()
    en marcha:  engine notifica ──▸ ¿cambió config o ledger.version? ──▸ store.save()

Se compara contra la huella de la última escritura, así que los ticks
que no cambian nada no tocan disco.
"""

from __future__ import annotations

from typing import Callable, Optional

from simtrader.application.dto.engine_config import EngineConfig
from simtrader.application.dto.snapshot_dto import EngineSnapshot
from simtrader.application.ports.snapshot_store import ISnapshotStore
from simtrader.application.services.position_engine import PositionEngine
from simtrader.domain.exceptions.domain_errors import SnapshotError
from simtrader.domain.services.performance_ledger import PerformanceLedger
from simtrader.shared.logging.logger import get_logger

logger = get_logger("snapshot_keeper")


class SnapshotKeeper:

    def __init__(
        self,
        engine: PositionEngine,
        ledger: PerformanceLedger,
        store: ISnapshotStore,
    ) -> None:
        self._engine = engine
        self._ledger = ledger
        self._store = store
        self._last_written: Optional[tuple[EngineConfig, int]] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    def restore(self) -> bool:
        """
        Aplica el snapshot guardado, si existe.

        Returns:
            True si se cargó un snapshot.
        """
        snapshot = self._store.load()
        if snapshot is None:
            logger.info("Sin snapshot previo – se usan los defaults")
            return False

        if snapshot.config is not None:
            self._engine.replace_config(snapshot.config)
        self._ledger.load_metrics(snapshot.to_metrics())
        self._last_written = self._fingerprint()

        logger.info(
            "💾 Snapshot restaurado (guardado %s): %d métricas, config=%s",
            snapshot.saved_at.isoformat(), len(snapshot.metrics),
            "sí" if snapshot.config is not None else "defaults",
        )
        return True

    def persist(self, force: bool = False) -> bool:
        """
        Escribe el snapshot si la config o el ledger cambiaron.

        Returns:
            True si se escribió.

        Raises:
            SnapshotError: si el store no pudo escribir.
        """
        fingerprint = self._fingerprint()
        if not force and fingerprint == self._last_written:
            return False

        snapshot = EngineSnapshot.from_state(
            self._engine.get_config(), self._ledger.export_metrics(),
        )
        self._store.save(snapshot)
        self._last_written = fingerprint
        logger.debug("💾 Snapshot escrito (%d métricas)", len(snapshot.metrics))
        return True

    def attach(self) -> Callable[[], None]:
        """Escribe en cada notificación del motor. Devuelve el detach."""
        if self._unsubscribe is None:
            self._unsubscribe = self._engine.subscribe(self._on_engine_update)
        return self.detach

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_engine_update(self, _open_positions, _stats) -> None:
        try:
            self.persist()
        except SnapshotError as exc:
            logger.warning("⚠️ No se pudo escribir el snapshot: %s", exc.message)

    def _fingerprint(self) -> tuple[EngineConfig, int]:
        return self._engine.get_config(), self._ledger.version
