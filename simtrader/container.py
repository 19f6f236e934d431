"""
Dependency Injection Container.

Este módulo proporciona el contenedor que crea y conecta los
componentes del simulador: Price Feed, Performance Ledger, Position
Engine, snapshot local y (opcional) el Persistence Gateway SQL.

Este contenedor vive en la capa más externa y es el único lugar donde
se crean dependencias concretas.

CABLEADO:
    PriceFeed.subscribe(engine.on_price_tick)
    engine.price_provider = PriceFeed.current_price
    engine.ledger         = PerformanceLedger
    engine.gateway        = SqlPersistenceGateway (si db_enabled)
"""

import random
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from simtrader.application.dto.engine_config import EngineConfig
from simtrader.application.ports.persistence_gateway import IPersistenceGateway
from simtrader.application.ports.snapshot_store import ISnapshotStore
from simtrader.application.services.position_engine import PositionEngine
from simtrader.application.services.price_feed import PriceFeed
from simtrader.application.services.snapshot_keeper import SnapshotKeeper
from simtrader.domain.services.performance_ledger import PerformanceLedger
from simtrader.shared.config.settings import Settings


@dataclass
class Container:
    """
    Contenedor de Inyección de Dependencias.

    Cada componente se crea perezosamente la primera vez que se pide y
    se comparte a partir de ahí.
    """

    settings: Settings = field(default_factory=Settings)

    _price_feed: Optional[PriceFeed] = None
    _ledger: Optional[PerformanceLedger] = None
    _engine: Optional[PositionEngine] = None
    _gateway: Optional[IPersistenceGateway] = None
    _snapshot_store: Optional[ISnapshotStore] = None
    _snapshot_keeper: Optional[SnapshotKeeper] = None

    _feed_unsubscribe: Optional[Callable[[], None]] = None

    # ==================== Domain Services ====================

    @property
    def ledger(self) -> PerformanceLedger:
        """Obtiene o crea el PerformanceLedger (singleton)."""
        if self._ledger is None:
            s = self.settings
            self._ledger = PerformanceLedger(
                bucket_width=s.ledger_bucket_width,
                min_sample_size=s.ledger_min_sample_size,
                min_multiplier=s.ledger_min_multiplier,
                max_multiplier=s.ledger_max_multiplier,
            )
        return self._ledger

    # ==================== Application Services ====================

    @property
    def price_feed(self) -> PriceFeed:
        """Obtiene o crea el PriceFeed sembrado con los símbolos de settings."""
        if self._price_feed is None:
            s = self.settings
            self._price_feed = PriceFeed(
                volatility=s.feed_volatility,
                trend_bias=s.feed_trend_bias,
                update_interval=s.feed_update_interval,
                rng=random.Random(s.feed_seed) if s.feed_seed is not None else None,
            )
            self._price_feed.initialize(s.feed_symbols)
        return self._price_feed

    @property
    def engine(self) -> PositionEngine:
        """Obtiene o crea el PositionEngine conectado al feed, ledger y gateway."""
        if self._engine is None:
            feed = self.price_feed
            self._engine = PositionEngine(
                EngineConfig.from_settings(self.settings),
                ledger=self.ledger,
                gateway=self.gateway,
                price_provider=feed.current_price,
                adaptive_confidence=self.settings.engine_adaptive_confidence,
            )
            self._feed_unsubscribe = feed.subscribe(self._engine.on_price_tick)
        return self._engine

    @property
    def snapshot_keeper(self) -> SnapshotKeeper:
        if self._snapshot_keeper is None:
            self._snapshot_keeper = SnapshotKeeper(
                self.engine, self.ledger, self.snapshot_store,
            )
        return self._snapshot_keeper

    # ==================== Ports ====================

    @property
    def snapshot_store(self) -> ISnapshotStore:
        if self._snapshot_store is None:
            from simtrader.infrastructure.persistence.snapshot_store import JsonSnapshotStore
            self._snapshot_store = JsonSnapshotStore(self.settings.snapshot_path)
        return self._snapshot_store

    @property
    def gateway(self) -> Optional[IPersistenceGateway]:
        """Gateway SQL si está habilitado (db_enabled), si no None."""
        if not self.settings.db_enabled:
            return self._gateway
        if self._gateway is None:
            from simtrader.infrastructure.persistence.database import DatabaseManager
            from simtrader.infrastructure.persistence.sql_gateway import SqlPersistenceGateway
            self._gateway = SqlPersistenceGateway(DatabaseManager(self.settings))
        return self._gateway

    # ==================== Lifecycle ====================

    def reset(self) -> None:
        """Detiene el feed y descarta todas las instancias."""
        if self._feed_unsubscribe is not None:
            self._feed_unsubscribe()
            self._feed_unsubscribe = None
        if self._price_feed is not None:
            self._price_feed.stop()
        if self._snapshot_keeper is not None:
            self._snapshot_keeper.detach()
        self._price_feed = None
        self._ledger = None
        self._engine = None
        self._gateway = None
        self._snapshot_store = None
        self._snapshot_keeper = None

    def override(self, name: str, instance: Any) -> None:
        """
        Override una dependencia (útil para tests con dobles).

        Debe llamarse antes de que la dependencia se resuelva por primera vez.

        Args:
            name: Nombre de la dependencia (ej: 'gateway', 'snapshot_store')
            instance: Instancia a usar
        """
        attr_name = f"_{name}"
        if not hasattr(self, attr_name):
            raise ValueError(f"Unknown dependency: {name}")
        setattr(self, attr_name, instance)


# ==================== Global Container ====================

_container: Optional[Container] = None


def get_container() -> Container:
    """Obtiene la instancia global del contenedor."""
    global _container
    if _container is None:
        _container = Container()
    return _container


def reset_container() -> None:
    """Resetea el contenedor global (tests o reinicialización)."""
    global _container
    if _container is not None:
        _container.reset()
    _container = None


def init_container(settings: Optional[Settings] = None) -> Container:
    """
    Inicializa el contenedor con configuración específica.

    Args:
        settings: Configuración opcional. Si es None, usa valores por defecto.
    """
    global _container
    if _container is not None:
        _container.reset()
    _container = Container(settings=settings or Settings())
    return _container
