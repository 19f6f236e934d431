"""
SimTrader - Strategy Metric ORM Model
======================================
Una fila por bucket (symbol, confidence_range) del Performance Ledger.
UNIQUE(symbol, confidence_range): el gateway hace upsert.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from simtrader.infrastructure.persistence.database import Base


class StrategyMetricModel(Base):

    __tablename__ = "strategy_metrics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    symbol: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    confidence_range: Mapped[str] = mapped_column(String(7), nullable=False)

    total_trades: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    winning_trades: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    losing_trades: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    avg_profit: Mapped[Decimal] = mapped_column(Numeric(20, 6), nullable=False, default=0)
    avg_loss: Mapped[Decimal] = mapped_column(Numeric(20, 6), nullable=False, default=0)
    win_rate: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=0)
    profit_factor: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False, default=0)
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("symbol", "confidence_range", name="uq_strategy_metrics_bucket"),
    )

    def __repr__(self) -> str:
        return f"<StrategyMetricModel {self.symbol}:{self.confidence_range} n={self.total_trades}>"
