"""
SimTrader - Shared Module
==========================
Utilidades transversales usadas por todas las capas.

Este módulo contiene:
- config/: Settings y configuración
- logging/: Setup de logging
- events/: Registro de listeners (fan-out síncrono)

NOTA: Este módulo no contiene lógica de negocio.
"""

from simtrader.shared.config.settings import settings
from simtrader.shared.logging.logger import setup_logging, get_logger

__all__ = [
    "settings",
    "setup_logging",
    "get_logger",
]
