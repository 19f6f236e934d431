"""
SimTrader - Domain Value Object: PriceQuote
============================================
Precio publicado por el Price Feed para un símbolo en un tick.

- frozen=True → inmutable, seguro para pasar a cualquier suscriptor.
- price ya viene redondeado a 5 decimales (precisión de fracción de pip).
- change_percent se calcula contra el precio INMEDIATAMENTE anterior,
  no contra la apertura de sesión.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class PriceQuote:
    symbol: str
    price: float
    previous_price: float
    change: float = 0.0
    change_percent: float = 0.0
    timestamp: float = 0.0

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "price": self.price,
            "previous_price": self.previous_price,
            "change": self.change,
            "change_percent": self.change_percent,
            "timestamp": self.timestamp,
        }
