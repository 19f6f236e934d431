"""Domain value objects."""
from simtrader.domain.value_objects.price_quote import PriceQuote
from simtrader.domain.value_objects.engine_stats import EngineStats
from simtrader.domain.value_objects.strategy_metric import (
    PerformanceMultiplier,
    StrategyMetric,
)

__all__ = ["PriceQuote", "EngineStats", "PerformanceMultiplier", "StrategyMetric"]
