"""
SimTrader - SQLAlchemy ORM Base Configuration
==============================================
Configuración base para todos los modelos ORM y manejo del engine async.

Es la implementación concreta de la infraestructura de base de datos.
El Position Engine solo conoce IPersistenceGateway, nunca esta clase.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from simtrader.shared.config.settings import Settings
from simtrader.shared.logging.logger import get_logger

logger = get_logger("database")

# ─── Naming Convention (para migraciones consistentes) ─────────────────────
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Base declarativa para todos los modelos ORM."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)


class DatabaseManager:
    """
    Manager del engine async y la session factory.

    USO:
        db = DatabaseManager(url="sqlite+aiosqlite:///simtrader.db")
        await db.initialize()
        await db.create_all()

        async with db.session() as session:
            result = await session.execute(...)

        await db.close()
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        url: Optional[str] = None,
        echo: Optional[bool] = None,
    ) -> None:
        self._settings = settings or Settings()
        self._url = url or self._settings.db_url
        self._echo = self._settings.db_echo if echo is None else echo
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def database_url(self) -> str:
        return self._url

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None

    async def initialize(self) -> None:
        """Inicializa el engine async y la session factory."""
        if self._engine is not None:
            return

        self._engine = create_async_engine(
            self._url,
            echo=self._echo,
            pool_pre_ping=True,
        )
        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        logger.info("🗄️ Base de datos inicializada (%s)", self._engine.url.render_as_string())

    async def create_all(self) -> None:
        """Crea las tablas que falten (sin migraciones)."""
        if self._engine is None:
            raise RuntimeError("DatabaseManager no inicializado. Llama a initialize() primero.")

        # Registrar los modelos en Base.metadata
        from simtrader.infrastructure.persistence import models  # noqa: F401

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        """Cierra el engine y todas las conexiones del pool."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Context manager async para sesiones (rollback ante error)."""
        if self._session_factory is None:
            raise RuntimeError("DatabaseManager no inicializado. Llama a initialize() primero.")

        async with self._session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
