"""
SimTrader - Settings (Pydantic BaseSettings)
=============================================
Configuración centralizada cargada desde variables de entorno / .env.
Se usa pydantic-settings para validación estricta al arranque.

Estos valores son DEFAULTS de arranque. La configuración "viva" del motor
(EngineConfig) se puede reemplazar en caliente y se persiste en el
snapshot local; el snapshot tiene prioridad sobre estos defaults.
"""

from __future__ import annotations

from typing import Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ─── Price Feed ─────────────────────────────────────────────────────
    feed_symbols: Dict[str, float] = Field(
        default={
            "EURUSD": 1.10000,
            "GBPUSD": 1.27000,
            "USDJPY": 149.500,
            "AUDUSD": 0.65500,
        },
        description="Símbolos simulados y su precio inicial",
    )
    feed_volatility: float = Field(
        default=0.0001, ge=0.0, description="Movimiento máximo por tick (unidades de precio)",
    )
    feed_trend_bias: float = Field(
        default=0.0, ge=-1.0, le=1.0, description="Sesgo de tendencia [-1, 1]",
    )
    feed_update_interval: float = Field(
        default=1.0, gt=0.0, description="Intervalo entre ticks en segundos",
    )
    feed_seed: Optional[int] = Field(
        default=None, description="Semilla del random walk (None = no determinista)",
    )

    # ─── Position Engine (defaults de EngineConfig) ─────────────────────
    engine_min_confidence: float = Field(
        default=70.0, description="Confianza mínima para admitir una señal",
    )
    engine_max_positions: int = Field(
        default=3, description="Máximo de posiciones abiertas simultáneas",
    )
    engine_position_size: float = Field(
        default=1000.0, description="Tamaño fijo de cada posición",
    )
    engine_max_daily_trades: int = Field(
        default=10, description="Máximo de posiciones abiertas por día (UTC)",
    )
    engine_time_limit: float = Field(
        default=240.0, description="Duración máxima de una posición en minutos",
    )
    engine_starting_balance: float = Field(
        default=10_000.0, description="Balance virtual inicial",
    )
    engine_adaptive_confidence: bool = Field(
        default=True, description="Ajustar confianza con el Performance Ledger",
    )

    # ─── Performance Ledger (políticas ajustables) ──────────────────────
    ledger_bucket_width: int = Field(
        default=10, gt=0, le=100, description="Ancho del bucket de confianza",
    )
    ledger_min_sample_size: int = Field(
        default=5, ge=1, description="Trades mínimos antes de ajustar confianza",
    )
    ledger_min_multiplier: float = Field(default=0.7, gt=0.0)
    ledger_max_multiplier: float = Field(default=1.3, gt=0.0)

    # ─── Snapshot local ─────────────────────────────────────────────────
    snapshot_path: str = Field(
        default="simtrader_snapshot.json",
        description="Archivo JSON con config + métricas del ledger",
    )

    # ─── Base de datos (Persistence Gateway) ────────────────────────────
    db_enabled: bool = Field(default=False, description="Habilitar Persistence Gateway SQL")
    db_url: str = Field(
        default="sqlite+aiosqlite:///simtrader.db",
        description="URL async de SQLAlchemy",
    )
    db_echo: bool = Field(default=False, description="Loguear queries SQL (debug)")

    # ─── Logging ────────────────────────────────────────────────────────
    log_level: str = Field(default="INFO")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "env_prefix": "SIMTRADER_",
    }


# Singleton global – se importa donde se necesite
settings = Settings()
