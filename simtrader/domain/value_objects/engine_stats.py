"""
SimTrader - Engine Stats (Value Object)
========================================
Foto inmutable de las estadísticas agregadas del Position Engine.

NUNCA se muta de forma independiente: siempre se recalcula con
`compute_engine_stats(positions, config)` a partir del conjunto de
posiciones. Así no hay contadores que puedan divergir del estado real.

INVARIANTES:
  net_pl          = Σ profit_loss de posiciones cerradas
  virtual_balance = starting_balance + net_pl
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class EngineStats:
    # ── Contadores ──────────────────────────────────────────────────
    total_trades: int = 0
    open_positions: int = 0
    closed_positions: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    trades_today: int = 0

    # ── P/L ─────────────────────────────────────────────────────────
    total_profit: float = 0.0
    total_loss: float = 0.0   # magnitud (>= 0)
    net_pl: float = 0.0
    win_rate: float = 0.0     # porcentaje 0-100 sobre cerradas
    avg_profit: float = 0.0
    avg_loss: float = 0.0     # magnitud (>= 0)

    # ── Estado ──────────────────────────────────────────────────────
    is_running: bool = False
    starting_balance: float = 0.0
    virtual_balance: float = 0.0

    # HIT_SL / HIT_TP / TIME_LIMIT / MANUAL → count
    exits_by_reason: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Serialización para gateway / logs."""
        return {
            "total_trades": self.total_trades,
            "open_positions": self.open_positions,
            "closed_positions": self.closed_positions,
            "winning_trades": self.winning_trades,
            "losing_trades": self.losing_trades,
            "trades_today": self.trades_today,
            "total_profit": round(self.total_profit, 4),
            "total_loss": round(self.total_loss, 4),
            "net_pl": round(self.net_pl, 4),
            "win_rate": round(self.win_rate, 2),
            "avg_profit": round(self.avg_profit, 4),
            "avg_loss": round(self.avg_loss, 4),
            "is_running": self.is_running,
            "starting_balance": round(self.starting_balance, 2),
            "virtual_balance": round(self.virtual_balance, 4),
            "exits_by_reason": dict(self.exits_by_reason),
        }
