from simtrader.infrastructure.persistence.mappers.metric_mapper import MetricMapper
from simtrader.infrastructure.persistence.mappers.position_mapper import PositionMapper

__all__ = ["MetricMapper", "PositionMapper"]
