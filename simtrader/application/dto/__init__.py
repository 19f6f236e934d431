"""Application DTOs - contratos entre capas."""
from simtrader.application.dto.engine_config import EngineConfig
from simtrader.application.dto.signal_dto import SignalDTO
from simtrader.application.dto.snapshot_dto import (
    SNAPSHOT_SCHEMA_VERSION,
    EngineSnapshot,
    StrategyMetricRecord,
    parse_snapshot,
)

__all__ = [
    "EngineConfig",
    "SignalDTO",
    "SNAPSHOT_SCHEMA_VERSION",
    "EngineSnapshot",
    "StrategyMetricRecord",
    "parse_snapshot",
]
