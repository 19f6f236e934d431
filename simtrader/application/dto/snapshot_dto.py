"""
SimTrader - Application DTO: Engine Snapshot
=============================================
Registro versionado que permite continuidad entre reinicios:
configuración del motor + TODAS las métricas del Performance Ledger.

FORMATO (JSON):
    {
      "schema_version": 1,
      "saved_at": "2026-01-01T12:00:00+00:00",
      "config": { ...EngineConfig... },
      "metrics": [ { ...StrategyMetric... }, ... ]
    }

CARGA TOLERANTE A FALLAS PARCIALES:
  - schema_version desconocido → SnapshotError (el caller decide).
  - config inválida → warning, config=None (se usan los defaults).
  - métrica malformada → warning, se salta ESE registro y se sigue.
  La carga nunca aborta por un registro individual.

Se aceptan claves snake_case y camelCase (exportaciones del dashboard web
usan camelCase: totalTrades, confidenceRange, ...).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from simtrader.application.dto.engine_config import EngineConfig
from simtrader.domain.exceptions.domain_errors import ConfigurationError, SnapshotError
from simtrader.domain.value_objects.strategy_metric import StrategyMetric
from simtrader.shared.logging.logger import get_logger

logger = get_logger("snapshot")

SNAPSHOT_SCHEMA_VERSION = 1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StrategyMetricRecord(BaseModel):
    """Registro persistido de una StrategyMetric."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    symbol: str = Field(min_length=1)
    confidence_range: str = Field(pattern=r"^\d{1,3}-\d{1,3}$")
    total_trades: int = Field(ge=0)
    winning_trades: int = Field(default=0, ge=0)
    losing_trades: int = Field(default=0, ge=0)
    avg_profit: float = 0.0
    avg_loss: float = 0.0
    win_rate: float = Field(default=0.0, ge=0.0, le=100.0)
    profit_factor: float = Field(default=0.0, ge=0.0)
    last_updated: datetime = Field(default_factory=_utcnow)

    @field_validator("last_updated")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("avg_loss")
    @classmethod
    def _loss_is_negative(cls, value: float) -> float:
        # el dashboard web exporta avgLoss como magnitud positiva
        return -abs(value)

    @field_validator("avg_profit")
    @classmethod
    def _profit_is_positive(cls, value: float) -> float:
        return abs(value)

    @model_validator(mode="after")
    def _check_counts(self) -> "StrategyMetricRecord":
        if self.winning_trades + self.losing_trades > self.total_trades:
            raise ValueError("winning_trades + losing_trades > total_trades")
        return self

    @classmethod
    def from_metric(cls, metric: StrategyMetric) -> "StrategyMetricRecord":
        return cls(
            symbol=metric.symbol,
            confidence_range=metric.confidence_range,
            total_trades=metric.total_trades,
            winning_trades=metric.winning_trades,
            losing_trades=metric.losing_trades,
            avg_profit=metric.avg_profit,
            avg_loss=metric.avg_loss,
            win_rate=metric.win_rate,
            profit_factor=metric.profit_factor,
            last_updated=metric.last_updated,
        )

    def to_metric(self) -> StrategyMetric:
        return StrategyMetric(**self.model_dump())


class EngineSnapshot(BaseModel):
    """Snapshot completo cargado en memoria de una sola vez."""

    schema_version: int = SNAPSHOT_SCHEMA_VERSION
    saved_at: datetime = Field(default_factory=_utcnow)
    config: Optional[EngineConfig] = None
    metrics: List[StrategyMetricRecord] = Field(default_factory=list)

    @classmethod
    def from_state(
        cls,
        config: EngineConfig,
        metrics: list[StrategyMetric],
    ) -> "EngineSnapshot":
        return cls(
            config=config,
            metrics=[StrategyMetricRecord.from_metric(m) for m in metrics],
        )

    def to_metrics(self) -> list[StrategyMetric]:
        return [record.to_metric() for record in self.metrics]

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json")


def parse_snapshot(raw: Any) -> EngineSnapshot:
    """
    dict crudo (JSON) → EngineSnapshot, saltando registros malformados.

    Raises:
        SnapshotError: si el documento no es un objeto o su versión no
        está soportada.
    """
    if not isinstance(raw, dict):
        raise SnapshotError("El snapshot no es un objeto JSON")

    version = raw.get("schema_version")
    if version != SNAPSHOT_SCHEMA_VERSION:
        raise SnapshotError(f"schema_version no soportado: {version!r}")

    config: EngineConfig | None = None
    if raw.get("config") is not None:
        try:
            config = EngineConfig.parse(raw["config"])
        except ConfigurationError as exc:
            logger.warning("Config del snapshot ignorada: %s", exc.message)

    raw_metrics = raw.get("metrics") or []
    if not isinstance(raw_metrics, list):
        logger.warning("'metrics' no es una lista – se ignora")
        raw_metrics = []

    records: list[StrategyMetricRecord] = []
    for index, item in enumerate(raw_metrics):
        try:
            records.append(StrategyMetricRecord.model_validate(item))
        except ValidationError as exc:
            logger.warning(
                "⚠️ Métrica #%d malformada, se salta: %s",
                index, exc.errors()[0].get("msg"),
            )

    snapshot = EngineSnapshot(
        schema_version=version,
        config=config,
        metrics=records,
    )
    saved_at = raw.get("saved_at")
    if saved_at:
        try:
            snapshot = snapshot.model_copy(
                update={"saved_at": datetime.fromisoformat(str(saved_at))},
            )
        except ValueError:
            logger.debug("saved_at ilegible: %r", saved_at)
    return snapshot
