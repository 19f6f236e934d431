"""
SimTrader - Application DTO: Signal
====================================
Contrato de entrada del Signal Source (archivo JSON, API externa).

Acepta el formato del dashboard web (`type`, `stop`, `targets`)
y el formato nativo (`direction`, `stop_loss`, `take_profits`).
"""

from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from simtrader.domain.entities.signal import Direction, Signal
from simtrader.domain.exceptions.domain_errors import InvalidSignalError


class SignalDTO(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    symbol: str
    direction: Direction = Field(validation_alias=AliasChoices("direction", "type"))
    confidence: float
    entry: float
    stop_loss: float = Field(validation_alias=AliasChoices("stop_loss", "stop", "stopLoss"))
    take_profits: List[float] = Field(
        validation_alias=AliasChoices("take_profits", "targets", "takeProfits"),
    )
    timestamp: Optional[float] = None

    @classmethod
    def parse(cls, data: Dict[str, Any]) -> Signal:
        """dict → Signal validada (InvalidSignalError si no se puede)."""
        try:
            dto = cls.model_validate(data)
        except ValidationError as exc:
            first = exc.errors()[0]
            raise InvalidSignalError(
                f"Señal malformada: {first.get('msg')}",
                reason=".".join(str(p) for p in first.get("loc", ())),
            ) from exc
        return dto.to_entity()

    def to_entity(self) -> Signal:
        kwargs: Dict[str, Any] = {
            "symbol": self.symbol,
            "direction": self.direction,
            "confidence": self.confidence,
            "entry": self.entry,
            "stop_loss": self.stop_loss,
            "take_profits": tuple(self.take_profits),
            "timestamp": self.timestamp if self.timestamp is not None else time.time(),
        }
        if self.id:
            kwargs["id"] = self.id
        return Signal(**kwargs)
