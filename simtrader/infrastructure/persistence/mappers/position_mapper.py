"""
SimTrader - Position Mapper
============================
Mapea entre Position (domain entity) y PositionModel (ORM).
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Optional

from simtrader.domain.entities.position import Position


def _dec(value: Optional[float], places: int = 8) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(round(value, places)))


def _epoch_ms(timestamp: Optional[float]) -> Optional[int]:
    if timestamp is None:
        return None
    return int(timestamp * 1000)


class PositionMapper:
    """
    Mapper Position → columnas de PositionModel.
    """

    def to_model(self, position: Position, session_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Convierte una Position (abierta o cerrada) a dict para crear PositionModel.

        Args:
            position: Snapshot de la entidad de dominio
            session_id: Sesión de trading activa (o None)
        """
        data = {
            "uuid": position.id,
            "session_id": session_id,
            "signal_id": position.signal_id,
            "symbol": position.symbol,
            "direction": position.direction.value,
            "entry_price": _dec(position.entry_price),
            "stop_loss": _dec(position.stop_loss),
            "take_profits": [round(tp, 8) for tp in position.take_profits],
            "size": _dec(position.size, 4),
            "confidence": _dec(position.confidence, 2),
            "base_confidence": _dec(position.base_confidence, 2),
            "opened_at": _epoch_ms(position.open_timestamp),
        }
        data.update(self.close_fields(position))
        return data

    def close_fields(self, position: Position) -> Dict[str, Any]:
        """Columnas que cambian al cerrar (todas NULL mientras está OPEN)."""
        closed = position.is_closed
        return {
            "status": position.status.value,
            "exit_price": _dec(position.exit_price) if closed else None,
            "exit_reason": position.exit_reason.value if closed else None,
            "profit_loss": _dec(position.profit_loss, 6) if closed else None,
            "closed_at": _epoch_ms(position.exit_timestamp) if closed else None,
        }
