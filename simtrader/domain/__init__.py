"""
SimTrader - Domain Layer
=========================
Núcleo puro del simulador. CERO dependencias externas.

Este módulo contiene:
- entities/: Signal, Position
- value_objects/: PriceQuote, EngineStats, StrategyMetric
- services/: PerformanceLedger, proyección de stats
- exceptions/: Excepciones de dominio

REGLA DE DEPENDENCIA:
Este módulo NO puede importar de:
- application/
- infrastructure/
- Frameworks externos (SQLAlchemy, pydantic, etc.)
"""

from simtrader.domain.entities.signal import Direction, Signal
from simtrader.domain.entities.position import ExitReason, Position, PositionStatus
from simtrader.domain.value_objects.engine_stats import EngineStats
from simtrader.domain.value_objects.price_quote import PriceQuote
from simtrader.domain.value_objects.strategy_metric import (
    PerformanceMultiplier,
    StrategyMetric,
)

__all__ = [
    "Direction",
    "Signal",
    "ExitReason",
    "Position",
    "PositionStatus",
    "EngineStats",
    "PriceQuote",
    "PerformanceMultiplier",
    "StrategyMetric",
]
