"""
SimTrader - SQL Persistence Gateway
====================================
Implementación de IPersistenceGateway sobre SQLAlchemy async.

El Position Engine agenda estas corutinas como tasks y NO las espera:
cada método abre su propia sesión, hace commit y, si falla, propaga la
excepción para que el motor la loguee. No hay reintentos.

    on_position_open   → INSERT positions
    on_position_close  → UPDATE positions (INSERT si el open se perdió)
    on_session_update  → UPDATE trading_sessions
    on_metric_update   → UPSERT strategy_metrics
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import desc, select, update

from simtrader.application.dto.engine_config import EngineConfig
from simtrader.application.ports.persistence_gateway import IPersistenceGateway
from simtrader.domain.entities.position import Position
from simtrader.domain.value_objects.engine_stats import EngineStats
from simtrader.domain.value_objects.strategy_metric import StrategyMetric
from simtrader.infrastructure.persistence.database import DatabaseManager
from simtrader.infrastructure.persistence.mappers import MetricMapper, PositionMapper
from simtrader.infrastructure.persistence.models import (
    PositionModel,
    StrategyMetricModel,
    TradingSessionModel,
)
from simtrader.shared.logging.logger import get_logger

logger = get_logger("sql_gateway")


class SqlPersistenceGateway(IPersistenceGateway):
    """
    Gateway durable para posiciones, sesiones y métricas del ledger.
    """

    def __init__(self, db: DatabaseManager):
        self._db = db
        self._session_id: Optional[str] = None
        self._positions = PositionMapper()
        self._metrics = MetricMapper()

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    async def initialize(self) -> None:
        """Conecta y crea las tablas que falten."""
        await self._db.initialize()
        await self._db.create_all()

    async def close(self) -> None:
        await self._db.close()

    # ════════════════════════════════════════════════════════════════
    #  SESIONES
    # ════════════════════════════════════════════════════════════════

    async def create_session(self, starting_balance: float, config: EngineConfig) -> str:
        """Crea una sesión de trading y la asocia a las posiciones siguientes."""
        session_id = uuid.uuid4().hex
        async with self._db.session() as session:
            session.add(TradingSessionModel(
                id=session_id,
                starting_balance=Decimal(str(starting_balance)),
                virtual_balance=Decimal(str(starting_balance)),
                config=config.model_dump(mode="json"),
            ))
            await session.commit()

        self._session_id = session_id
        logger.info("🗄️ Sesión de trading creada: %s", session_id)
        return session_id

    async def on_session_update(self, session_id: str, stats: EngineStats) -> None:
        async with self._db.session() as session:
            await session.execute(
                update(TradingSessionModel)
                .where(TradingSessionModel.id == session_id)
                .values(
                    total_trades=stats.total_trades,
                    winning_trades=stats.winning_trades,
                    losing_trades=stats.losing_trades,
                    net_pl=Decimal(str(round(stats.net_pl, 6))),
                    win_rate=Decimal(str(round(stats.win_rate, 2))),
                    virtual_balance=Decimal(str(round(stats.virtual_balance, 4))),
                    stats=stats.to_dict(),
                )
            )
            await session.commit()
        logger.debug("Sesión %s actualizada (net=%.4f)", session_id, stats.net_pl)

    async def get_session(self, session_id: str) -> Optional[TradingSessionModel]:
        async with self._db.session() as session:
            return await session.get(TradingSessionModel, session_id)

    # ════════════════════════════════════════════════════════════════
    #  POSICIONES
    # ════════════════════════════════════════════════════════════════

    async def on_position_open(self, position: Position) -> None:
        async with self._db.session() as session:
            session.add(PositionModel(**self._positions.to_model(position, self._session_id)))
            await session.commit()
        logger.debug("Posición guardada: id=%s symbol=%s", position.id, position.symbol)

    async def on_position_close(self, position: Position) -> None:
        async with self._db.session() as session:
            result = await session.execute(
                update(PositionModel)
                .where(PositionModel.uuid == position.id)
                .values(**self._positions.close_fields(position))
            )
            if result.rowcount == 0:
                logger.warning(
                    "Posición %s no estaba en BD – se inserta completa", position.id,
                )
                session.add(PositionModel(**self._positions.to_model(position, self._session_id)))
            await session.commit()
        logger.debug("Posición cerrada en BD: id=%s", position.id)

    async def find_positions(
        self,
        status: Optional[str] = None,
        symbol: Optional[str] = None,
        limit: int = 100,
    ) -> List[PositionModel]:
        query = select(PositionModel)
        if status:
            query = query.where(PositionModel.status == status)
        if symbol:
            query = query.where(PositionModel.symbol == symbol)
        query = query.order_by(desc(PositionModel.opened_at)).limit(limit)

        async with self._db.session() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    # ════════════════════════════════════════════════════════════════
    #  MÉTRICAS DEL LEDGER
    # ════════════════════════════════════════════════════════════════

    async def on_metric_update(self, metric: StrategyMetric) -> None:
        values = self._metrics.to_model(metric)
        async with self._db.session() as session:
            result = await session.execute(
                select(StrategyMetricModel).where(
                    StrategyMetricModel.symbol == metric.symbol,
                    StrategyMetricModel.confidence_range == metric.confidence_range,
                )
            )
            model = result.scalar_one_or_none()
            if model is None:
                session.add(StrategyMetricModel(**values))
            else:
                for field, value in values.items():
                    setattr(model, field, value)
            await session.commit()

    async def load_metrics(self) -> List[StrategyMetric]:
        """Todas las métricas guardadas (para PerformanceLedger.load_metrics)."""
        async with self._db.session() as session:
            result = await session.execute(
                select(StrategyMetricModel).order_by(
                    StrategyMetricModel.symbol, StrategyMetricModel.confidence_range,
                )
            )
            return [self._metrics.to_entity_from_orm(m) for m in result.scalars().all()]
