"""
SimTrader - Application DTO: EngineConfig
==========================================
Superficie de configuración del Position Engine, validada con pydantic
en la FRONTERA: un valor inválido (tamaño negativo, confianza > 100,
clave desconocida) se rechaza con ConfigurationError y el estado del
motor no cambia. No hay clamps silenciosos.

HOT-SWAP:
  El modelo es frozen. `with_changes()` devuelve una configuración NUEVA
  validada; el motor la reemplaza atómicamente y aplica en la próxima
  decisión de admisión. Las posiciones abiertas conservan el time limit
  con el que se abrieron.
"""

from __future__ import annotations

from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from simtrader.domain.exceptions.domain_errors import ConfigurationError


def _to_configuration_error(exc: ValidationError) -> ConfigurationError:
    """Traduce el primer error de pydantic a la excepción de dominio."""
    first = exc.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or None
    return ConfigurationError(
        f"Configuración inválida ({field}): {first.get('msg')}",
        field=field,
        value=first.get("input"),
    )


class EngineConfig(BaseModel):
    """Configuración reemplazable del Position Engine."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = Field(default=False, description="Admitir nuevas señales")
    min_confidence: float = Field(default=70.0, ge=0.0, le=100.0)
    max_positions: int = Field(default=3, ge=1)
    position_size: float = Field(default=1000.0, gt=0.0)
    max_daily_trades: int = Field(default=10, ge=0)
    time_limit: float = Field(default=240.0, gt=0.0, description="Minutos")
    starting_balance: float = Field(default=10_000.0, gt=0.0)

    @property
    def time_limit_seconds(self) -> float:
        return self.time_limit * 60.0

    @classmethod
    def parse(cls, data: Mapping[str, Any]) -> "EngineConfig":
        """Valida un dict (snapshot, CLI, API) → EngineConfig."""
        try:
            return cls.model_validate(dict(data))
        except ValidationError as exc:
            raise _to_configuration_error(exc) from exc

    @classmethod
    def from_settings(cls, settings) -> "EngineConfig":
        """Defaults de arranque desde Settings (pydantic-settings)."""
        return cls.parse({
            "min_confidence": settings.engine_min_confidence,
            "max_positions": settings.engine_max_positions,
            "position_size": settings.engine_position_size,
            "max_daily_trades": settings.engine_max_daily_trades,
            "time_limit": settings.engine_time_limit,
            "starting_balance": settings.engine_starting_balance,
        })

    def with_changes(self, **changes: Any) -> "EngineConfig":
        """Nueva configuración validada con los cambios aplicados."""
        return self.parse({**self.model_dump(), **changes})
