"""
SimTrader - Stats Calculator (proyección pura)
===============================================
Calcula EngineStats en UNA pasada O(n) sobre el conjunto de posiciones.

PRINCIPIO CENTRAL:
  Las estadísticas son una PROYECCIÓN del conjunto de posiciones, no
  contadores mutados incrementalmente. Cualquier cambio de estado (open,
  close, reset) se refleja recalculando. No hay drift posible.

  Win  = posición cerrada con P/L > 0
  Loss = posición cerrada con P/L < 0
  (P/L == 0 no cuenta como ganadora ni perdedora)

DÍA DE TRADING:
  Se usa el día calendario UTC del timestamp de apertura. Es el mismo
  criterio que aplica el Position Engine para `max_daily_trades`.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Iterable

from simtrader.domain.entities.position import Position
from simtrader.domain.value_objects.engine_stats import EngineStats


def utc_day(timestamp: float) -> date:
    """Día calendario UTC de un epoch."""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).date()


def count_opened_on(positions: Iterable[Position], day: date) -> int:
    """Posiciones (abiertas o cerradas) cuya apertura cae en `day`."""
    return sum(1 for p in positions if utc_day(p.open_timestamp) == day)


def compute_engine_stats(
    positions: Iterable[Position],
    *,
    starting_balance: float,
    is_running: bool,
    now: float | None = None,
) -> EngineStats:
    """
    Proyección positions → EngineStats.

    Args:
        positions: Todas las posiciones de la sesión (abiertas y cerradas).
        starting_balance: Balance virtual inicial de la configuración.
        is_running: Flag `enabled` de la configuración.
        now: Epoch de referencia para `trades_today`. None → no se calcula.
    """
    open_count = 0
    closed_count = 0
    wins = 0
    losses = 0
    total_profit = 0.0
    total_loss = 0.0
    net_pl = 0.0
    today_count = 0
    exits: dict[str, int] = {}
    today = utc_day(now) if now is not None else None

    # ── Pasada única ────────────────────────────────────────────────
    for position in positions:
        if today is not None and utc_day(position.open_timestamp) == today:
            today_count += 1

        if position.is_open:
            open_count += 1
            continue

        closed_count += 1
        pl = position.profit_loss or 0.0
        net_pl += pl
        if pl > 0:
            wins += 1
            total_profit += pl
        elif pl < 0:
            losses += 1
            total_loss += abs(pl)

        reason = position.exit_reason.value
        exits[reason] = exits.get(reason, 0) + 1

    # ── Derivados (protegidos contra /0) ────────────────────────────
    win_rate = (wins / closed_count) * 100.0 if closed_count > 0 else 0.0
    avg_profit = total_profit / wins if wins > 0 else 0.0
    avg_loss = total_loss / losses if losses > 0 else 0.0

    return EngineStats(
        total_trades=open_count + closed_count,
        open_positions=open_count,
        closed_positions=closed_count,
        winning_trades=wins,
        losing_trades=losses,
        trades_today=today_count,
        total_profit=total_profit,
        total_loss=total_loss,
        net_pl=net_pl,
        win_rate=win_rate,
        avg_profit=avg_profit,
        avg_loss=avg_loss,
        is_running=is_running,
        starting_balance=starting_balance,
        virtual_balance=starting_balance + net_pl,
        exits_by_reason=exits,
    )
