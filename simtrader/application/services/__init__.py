"""Application services - orquestación sobre el dominio."""
from simtrader.application.services.position_engine import PositionEngine
from simtrader.application.services.price_feed import PriceFeed
from simtrader.application.services.snapshot_keeper import SnapshotKeeper

__all__ = ["PositionEngine", "PriceFeed", "SnapshotKeeper"]
