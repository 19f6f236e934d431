"""
SimTrader - Strategy Metric / Performance Multiplier
=====================================================
Agregados por (símbolo, bucket de confianza) que alimentan el
aprendizaje online del Performance Ledger.

StrategyMetric NO es frozen: el ledger la actualiza de forma incremental
con cada resultado. Hacia afuera solo se entregan copias (`copy()`).

CONVENCIÓN DE SIGNOS:
  avg_profit >= 0  → media de P/L de trades ganadores
  avg_loss   <= 0  → media de P/L de trades perdedores (negativa)

  gross_profit = avg_profit × winning_trades
  gross_loss   = |avg_loss × losing_trades|
  profit_factor = gross_profit / gross_loss
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timezone


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class StrategyMetric:
    symbol: str
    confidence_range: str
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    avg_profit: float = 0.0
    avg_loss: float = 0.0
    win_rate: float = 0.0
    profit_factor: float = 0.0
    last_updated: datetime = field(default_factory=_utcnow)

    @property
    def key(self) -> str:
        return f"{self.symbol}:{self.confidence_range}"

    @property
    def gross_profit(self) -> float:
        return self.avg_profit * self.winning_trades

    @property
    def gross_loss(self) -> float:
        return abs(self.avg_loss * self.losing_trades)

    def copy(self) -> "StrategyMetric":
        return dataclasses.replace(self)

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "confidence_range": self.confidence_range,
            "total_trades": self.total_trades,
            "winning_trades": self.winning_trades,
            "losing_trades": self.losing_trades,
            "avg_profit": self.avg_profit,
            "avg_loss": self.avg_loss,
            "win_rate": self.win_rate,
            "profit_factor": self.profit_factor,
            "last_updated": self.last_updated.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class PerformanceMultiplier:
    """Multiplicador acotado aplicado a la confianza base de un bucket."""

    symbol: str
    confidence_range: str
    multiplier: float
    sample_size: int

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "confidence_range": self.confidence_range,
            "multiplier": round(self.multiplier, 4),
            "sample_size": self.sample_size,
        }
