"""
SimTrader - Position ORM Model
===============================
Modelo para la tabla `positions` (historial de posiciones simuladas).

DECISIONES DE DISEÑO:

- BIGINT para timestamps (epoch ms).
- Campos de salida NULL hasta que la posición se cierra.
- take_profits como JSON: una señal puede traer varios niveles.

RELACIÓN CON ENTIDAD DE DOMINIO:
- Position tiene ciclo de vida mutable.
- El gateway inserta al abrir y actualiza al cerrar.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    JSON, BigInteger, DateTime, Enum as SQLEnum, ForeignKey, Index,
    Integer, Numeric, String,
)
from sqlalchemy.orm import Mapped, mapped_column

from simtrader.infrastructure.persistence.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PositionModel(Base):
    """Modelo ORM para posiciones simuladas (paper trading)."""

    __tablename__ = "positions"

    # ─── Primary Key ──────────────────────────────────────────────────
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    uuid: Mapped[str] = mapped_column(
        String(12), unique=True, nullable=False,
        comment="Id corto generado por el motor",
    )

    # ─── Foreign Keys ─────────────────────────────────────────────────
    session_id: Mapped[Optional[str]] = mapped_column(
        String(32), ForeignKey("trading_sessions.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    signal_id: Mapped[str] = mapped_column(String(32), nullable=False, default="")

    # ─── Identidad ────────────────────────────────────────────────────
    symbol: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    direction: Mapped[str] = mapped_column(
        SQLEnum("LONG", "SHORT", name="position_direction_enum"), nullable=False,
    )

    # ─── Prices ───────────────────────────────────────────────────────
    entry_price: Mapped[Decimal] = mapped_column(Numeric(20, 8), nullable=False)
    stop_loss: Mapped[Decimal] = mapped_column(Numeric(20, 8), nullable=False)
    take_profits: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    exit_price: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(20, 8), default=None,
        comment="Precio de cierre (NULL si OPEN)",
    )

    # ─── Sizing & Confidence ──────────────────────────────────────────
    size: Mapped[Decimal] = mapped_column(Numeric(20, 4), nullable=False)
    confidence: Mapped[Decimal] = mapped_column(
        Numeric(6, 2), nullable=False, comment="Confianza ajustada al abrir",
    )
    base_confidence: Mapped[Decimal] = mapped_column(
        Numeric(6, 2), nullable=False, comment="Confianza original de la señal",
    )

    # ─── Status & Result ──────────────────────────────────────────────
    status: Mapped[str] = mapped_column(
        SQLEnum("OPEN", "CLOSED", name="position_status_enum"),
        nullable=False, default="OPEN",
    )
    exit_reason: Mapped[Optional[str]] = mapped_column(
        SQLEnum("HIT_SL", "HIT_TP", "TIME_LIMIT", "MANUAL", name="position_exit_reason_enum"),
        default=None,
    )
    profit_loss: Mapped[Optional[Decimal]] = mapped_column(Numeric(20, 6), default=None)

    # ─── Timing ───────────────────────────────────────────────────────
    opened_at: Mapped[int] = mapped_column(
        BigInteger, nullable=False, comment="Epoch ms de apertura",
    )
    closed_at: Mapped[Optional[int]] = mapped_column(
        BigInteger, default=None, comment="Epoch ms de cierre",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False,
    )

    __table_args__ = (
        Index("ix_positions_status_symbol", "status", "symbol"),
    )

    def __repr__(self) -> str:
        return f"<PositionModel {self.uuid} {self.symbol} {self.status}>"
