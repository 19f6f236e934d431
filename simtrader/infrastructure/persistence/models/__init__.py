"""
Infrastructure Models Package.

Contiene los modelos ORM de SQLAlchemy para la persistencia.
Estos modelos representan la estructura de la base de datos,
NO las entidades de dominio.
"""

from simtrader.infrastructure.persistence.models.position import PositionModel
from simtrader.infrastructure.persistence.models.strategy_metric import StrategyMetricModel
from simtrader.infrastructure.persistence.models.trading_session import TradingSessionModel

__all__ = [
    "PositionModel",
    "StrategyMetricModel",
    "TradingSessionModel",
]
