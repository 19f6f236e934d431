"""
SimTrader - Application Port: Persistence Gateway
==================================================
Interfaz hacia el almacenamiento durable de posiciones y sesiones.

CONTRATO (best-effort, fire-and-forget):
  - El Position Engine NO espera la finalización de estas llamadas.
  - El Position Engine NO reintenta. Si se desea retry, es
    responsabilidad del gateway.
  - Un fallo se loguea y NUNCA revierte la transición de estado en
    memoria (consistencia eventual).

Las implementaciones pueden ser síncronas o async: el motor agenda las
corutinas como tasks en el event loop activo.

IMPLEMENTACIONES:
  - SqlPersistenceGateway (SQLAlchemy async)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from simtrader.domain.entities.position import Position
    from simtrader.domain.value_objects.engine_stats import EngineStats
    from simtrader.domain.value_objects.strategy_metric import StrategyMetric


class IPersistenceGateway(ABC):

    @abstractmethod
    async def on_position_open(self, position: "Position") -> None:
        """Registra una posición recién abierta (snapshot de solo lectura)."""

    @abstractmethod
    async def on_position_close(self, position: "Position") -> None:
        """Registra el cierre de una posición (exit, P/L, motivo)."""

    @abstractmethod
    async def on_session_update(self, session_id: str, stats: "EngineStats") -> None:
        """Actualiza las estadísticas agregadas de una sesión de trading."""

    async def on_metric_update(self, metric: "StrategyMetric") -> None:
        """Bucket del ledger actualizado tras un cierre. Opcional."""
