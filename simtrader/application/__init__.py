"""
SimTrader - Application Layer
==============================
Orquestación del simulador sobre el dominio.

Este módulo contiene:
- services/: PriceFeed, PositionEngine, SnapshotKeeper
- ports/: Interfaces hacia infraestructura (gateway, snapshot store)
- dto/: EngineConfig, SignalDTO, EngineSnapshot (validación pydantic)

REGLA DE DEPENDENCIA:
Esta capa puede importar de:
- domain/ (entidades, servicios)
- shared/ (config, logging, listeners)

NO puede importar de:
- infrastructure/ (implementaciones concretas)
"""

from simtrader.application.dto.engine_config import EngineConfig
from simtrader.application.services.position_engine import PositionEngine
from simtrader.application.services.price_feed import PriceFeed
from simtrader.application.services.snapshot_keeper import SnapshotKeeper

__all__ = [
    "EngineConfig",
    "PositionEngine",
    "PriceFeed",
    "SnapshotKeeper",
]
