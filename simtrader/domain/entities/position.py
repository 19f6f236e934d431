"""
SimTrader - Domain Entity: Position
====================================
Posición virtual desde su admisión hasta su cierre.

═══════════════════════════════════════════════════════════════
            CICLO DE VIDA DE LA POSICIÓN
═══════════════════════════════════════════════════════════════

  Signal admitida
       │
       ▼
  Position OPEN (entry = precio vigente del Price Feed)
       │
       ├── Cada tick: mark(price) → current_price / unrealized_pl
       │
       ├── precio cruza SL ──────▸ CLOSED (HIT_SL)
       ├── precio alcanza un TP ─▸ CLOSED (HIT_TP)
       ├── time limit expira ────▸ CLOSED (TIME_LIMIT)
       └── cierre manual ────────▸ CLOSED (MANUAL)

POR QUÉ NO frozen=True:
  La posición tiene un ciclo de vida mutable (OPEN → CLOSED). Se usa una
  clase con transiciones controladas. Una vez cerrada, close() vuelve a
  fallar: una posición se cierra EXACTAMENTE una vez.

CÁLCULO DE P/L:
  pl = (exit_price - entry_price) × sign × size
  sign = +1 LONG, -1 SHORT

  Ejemplo LONG:  entry=1.1000, exit=1.0949, size=1000 → -5.1
  Ejemplo SHORT: entry=1.1000, exit=1.0900, size=1000 → +10.0
"""

from __future__ import annotations

import copy
from enum import Enum

from simtrader.domain.entities.signal import Direction, generate_id
from simtrader.domain.exceptions.domain_errors import InvalidPositionError


class PositionStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class ExitReason(str, Enum):
    """Motivo de cierre de la posición."""
    HIT_SL = "HIT_SL"          # stop-loss
    HIT_TP = "HIT_TP"          # take-profit
    TIME_LIMIT = "TIME_LIMIT"  # duración máxima
    MANUAL = "MANUAL"          # cierre explícito del usuario


class Position:
    """
    Posición simulada con transición de estado controlada.

    Los campos de salida (exit_price, exit_timestamp, profit_loss,
    exit_reason) son None mientras la posición está OPEN.
    """

    __slots__ = (
        "id", "signal_id", "symbol", "direction",
        "entry_price", "stop_loss", "take_profits",
        "confidence", "base_confidence", "size",
        "open_timestamp", "max_duration_seconds",
        "current_price", "unrealized_pl",
        "status", "exit_price", "exit_timestamp",
        "profit_loss", "exit_reason",
    )

    def __init__(
        self,
        symbol: str,
        direction: Direction,
        entry_price: float,
        stop_loss: float,
        take_profits: tuple,
        confidence: float,
        size: float,
        open_timestamp: float,
        max_duration_seconds: float,
        signal_id: str = "",
        base_confidence: float | None = None,
    ) -> None:
        self.id: str = generate_id()
        self.signal_id = signal_id
        self.symbol = symbol
        self.direction = Direction(direction)

        self.entry_price = entry_price
        self.stop_loss = stop_loss
        self.take_profits = tuple(take_profits)
        # confianza usada para admitir (ajustada) y la original del Signal Source
        self.confidence = confidence
        self.base_confidence = confidence if base_confidence is None else base_confidence
        self.size = size

        self.open_timestamp = open_timestamp
        self.max_duration_seconds = max_duration_seconds

        self.current_price: float = entry_price
        self.unrealized_pl: float = 0.0

        self.status: PositionStatus = PositionStatus.OPEN
        self.exit_price: float | None = None
        self.exit_timestamp: float | None = None
        self.profit_loss: float | None = None
        self.exit_reason: ExitReason | None = None

    # ════════════════════════════════════════════════════════════════
    #  CÁLCULOS
    # ════════════════════════════════════════════════════════════════

    def pl_at(self, price: float) -> float:
        """P/L que tendría la posición si se cerrara a `price`."""
        return (price - self.entry_price) * self.direction.sign * self.size

    def stop_breached(self, price: float) -> bool:
        if self.direction is Direction.LONG:
            return price <= self.stop_loss
        return price >= self.stop_loss

    def target_reached(self, price: float) -> bool:
        if self.direction is Direction.LONG:
            return any(price >= tp for tp in self.take_profits)
        return any(price <= tp for tp in self.take_profits)

    def held_for(self, timestamp: float) -> float:
        return timestamp - self.open_timestamp

    # ════════════════════════════════════════════════════════════════
    #  TRANSICIONES
    # ════════════════════════════════════════════════════════════════

    def mark(self, price: float) -> None:
        """Actualiza precio actual y P/L no realizado (solo OPEN)."""
        if self.status is not PositionStatus.OPEN:
            return
        self.current_price = price
        self.unrealized_pl = self.pl_at(price)

    def close(self, exit_price: float, reason: ExitReason, timestamp: float) -> float:
        """
        Transición OPEN → CLOSED.

        Returns:
            P/L realizado.

        Raises:
            InvalidPositionError si la posición ya estaba cerrada.
        """
        if self.status is not PositionStatus.OPEN:
            raise InvalidPositionError(
                f"La posición {self.id} ya está cerrada ({self.exit_reason})",
                position_id=self.id,
            )

        self.exit_price = exit_price
        self.exit_timestamp = timestamp
        self.exit_reason = ExitReason(reason)
        self.profit_loss = self.pl_at(exit_price)
        self.current_price = exit_price
        self.unrealized_pl = 0.0
        self.status = PositionStatus.CLOSED
        return self.profit_loss

    # ════════════════════════════════════════════════════════════════
    #  CONSULTAS
    # ════════════════════════════════════════════════════════════════

    @property
    def is_open(self) -> bool:
        return self.status is PositionStatus.OPEN

    @property
    def is_closed(self) -> bool:
        return self.status is PositionStatus.CLOSED

    @property
    def is_win(self) -> bool:
        return self.profit_loss is not None and self.profit_loss > 0

    def snapshot(self) -> "Position":
        """Copia desacoplada para ledger / gateway / presentación."""
        return copy.copy(self)

    def to_dict(self) -> dict:
        """Serialización para persistencia / logs."""
        closed = self.is_closed
        return {
            "id": self.id,
            "signal_id": self.signal_id,
            "symbol": self.symbol,
            "direction": self.direction.value,
            "entry_price": round(self.entry_price, 5),
            "stop_loss": round(self.stop_loss, 5),
            "take_profits": [round(tp, 5) for tp in self.take_profits],
            "confidence": round(self.confidence, 2),
            "base_confidence": round(self.base_confidence, 2),
            "size": self.size,
            "open_timestamp": self.open_timestamp,
            "current_price": round(self.current_price, 5),
            "unrealized_pl": round(self.unrealized_pl, 4),
            "status": self.status.value,
            "exit_price": round(self.exit_price, 5) if closed else None,
            "exit_timestamp": self.exit_timestamp if closed else None,
            "profit_loss": round(self.profit_loss, 4) if closed else None,
            "exit_reason": self.exit_reason.value if closed else None,
        }

    def __repr__(self) -> str:
        return (
            f"Position(id={self.id!r}, symbol={self.symbol!r}, "
            f"direction={self.direction.value}, status={self.status.value})"
        )
