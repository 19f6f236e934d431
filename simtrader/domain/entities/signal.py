"""
SimTrader - Domain Entity: Signal
==================================
Propuesta de trade inmutable producida por el Signal Source.

DECISIONES DE DISEÑO:
- frozen=True → nadie puede alterar una señal emitida. El motor solo la lee.
- take_profits es tuple → uno o más niveles de objetivo, inmutable.
- La validación ocurre al construir: una señal inválida nunca llega al
  motor de posiciones.

CAMPOS:
- symbol:        Par/instrumento (e.g. "EURUSD")
- direction:     LONG | SHORT
- confidence:    Score 0–100 del Signal Source (antes de ajuste del ledger)
- entry:         Precio de entrada sugerido (informativo: el motor entra
                 al precio vigente del Price Feed)
- stop_loss:     Nivel de stop
- take_profits:  Niveles de objetivo (el primero que se alcance cierra)
- timestamp:     Momento de creación (epoch)
- id:            Identificador compacto (UUID hex 12 chars)
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum

from simtrader.domain.exceptions.domain_errors import InvalidSignalError


class Direction(str, Enum):
    """Dirección del trade."""
    LONG = "LONG"
    SHORT = "SHORT"

    @property
    def sign(self) -> int:
        """+1 para LONG, -1 para SHORT (signo del P/L)."""
        return 1 if self is Direction.LONG else -1


def generate_id() -> str:
    """ID compacto único (12 chars hex de UUID4)."""
    return uuid.uuid4().hex[:12]


@dataclass(frozen=True, slots=True)
class Signal:
    """Señal de trading inmutable con niveles de riesgo pre-calculados."""

    symbol: str
    direction: Direction
    confidence: float
    entry: float
    stop_loss: float
    take_profits: tuple
    timestamp: float = field(default_factory=time.time)
    id: str = field(default_factory=generate_id)

    def __post_init__(self) -> None:
        try:
            direction = Direction(self.direction)
        except ValueError:
            raise InvalidSignalError(
                f"Dirección inválida: {self.direction!r}", reason="direction",
            ) from None
        object.__setattr__(self, "direction", direction)

        if isinstance(self.take_profits, (int, float)):
            targets = (float(self.take_profits),)
        else:
            targets = tuple(float(tp) for tp in self.take_profits)
        object.__setattr__(self, "take_profits", targets)

        if not self.symbol:
            raise InvalidSignalError("Señal sin símbolo", reason="symbol")
        if not 0.0 <= self.confidence <= 100.0:
            raise InvalidSignalError(
                f"Confianza fuera de rango [0, 100]: {self.confidence}",
                reason="confidence",
            )
        if not targets:
            raise InvalidSignalError(
                "La señal necesita al menos un take-profit", reason="take_profits",
            )
        if self.entry <= 0 or self.stop_loss <= 0 or any(tp <= 0 for tp in targets):
            raise InvalidSignalError("Precios deben ser > 0", reason="prices")

    def to_dict(self) -> dict:
        """Serialización para logs / persistencia."""
        return {
            "id": self.id,
            "symbol": self.symbol,
            "direction": self.direction.value,
            "confidence": round(self.confidence, 2),
            "entry": round(self.entry, 5),
            "stop_loss": round(self.stop_loss, 5),
            "take_profits": [round(tp, 5) for tp in self.take_profits],
            "timestamp": self.timestamp,
        }
