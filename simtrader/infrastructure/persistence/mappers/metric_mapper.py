"""
SimTrader - Strategy Metric Mapper
===================================
Mapea entre StrategyMetric (value object) y StrategyMetricModel (ORM).
"""

from __future__ import annotations

from datetime import timezone
from decimal import Decimal
from typing import Any, Dict

from simtrader.domain.value_objects.strategy_metric import StrategyMetric


class MetricMapper:
    """
    Mapper bidireccional StrategyMetric ↔ StrategyMetricModel.
    """

    def to_model(self, metric: StrategyMetric) -> Dict[str, Any]:
        return {
            "symbol": metric.symbol,
            "confidence_range": metric.confidence_range,
            "total_trades": metric.total_trades,
            "winning_trades": metric.winning_trades,
            "losing_trades": metric.losing_trades,
            "avg_profit": Decimal(str(round(metric.avg_profit, 6))),
            "avg_loss": Decimal(str(round(metric.avg_loss, 6))),
            "win_rate": Decimal(str(round(metric.win_rate, 2))),
            "profit_factor": Decimal(str(round(metric.profit_factor, 4))),
            "last_updated": metric.last_updated,
        }

    def to_entity_from_orm(self, model: Any) -> StrategyMetric:
        # SQLite devuelve datetimes naive: se asumen UTC
        last_updated = model.last_updated
        if last_updated.tzinfo is None:
            last_updated = last_updated.replace(tzinfo=timezone.utc)

        return StrategyMetric(
            symbol=model.symbol,
            confidence_range=model.confidence_range,
            total_trades=model.total_trades,
            winning_trades=model.winning_trades,
            losing_trades=model.losing_trades,
            avg_profit=float(model.avg_profit),
            avg_loss=float(model.avg_loss),
            win_rate=float(model.win_rate),
            profit_factor=float(model.profit_factor),
            last_updated=last_updated,
        )
