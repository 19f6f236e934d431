"""
SimTrader - Trading Session ORM Model
======================================
Una fila por ejecución del simulador: config con la que arrancó y las
estadísticas agregadas más recientes (on_session_update).
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import JSON, DateTime, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from simtrader.infrastructure.persistence.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TradingSessionModel(Base):

    __tablename__ = "trading_sessions"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)

    starting_balance: Mapped[Decimal] = mapped_column(Numeric(20, 4), nullable=False)
    virtual_balance: Mapped[Decimal] = mapped_column(Numeric(20, 4), nullable=False)
    config: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    # ─── Stats agregadas ──────────────────────────────────────────────
    total_trades: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    winning_trades: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    losing_trades: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    net_pl: Mapped[Decimal] = mapped_column(Numeric(20, 6), nullable=False, default=0)
    win_rate: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=0)
    stats: Mapped[dict] = mapped_column(
        JSON, nullable=False, default=dict, comment="EngineStats.to_dict() completo",
    )

    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False,
    )

    def __repr__(self) -> str:
        return f"<TradingSessionModel {self.id} trades={self.total_trades}>"
