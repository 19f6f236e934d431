"""
SimTrader - Position Engine (orquestador de paper trading)
===========================================================
Consume señales y ticks de precio, admite posiciones bajo límites de
riesgo, evalúa salidas en cada tick y notifica a ledger y gateway.

═══════════════════════════════════════════════════════════════
            FLUJO DEL MOTOR
═══════════════════════════════════════════════════════════════

    Signal recibida
        │
        ▼
    confianza ajustada por el Performance Ledger (si está conectado)
        │
        ▼
    ¿Admisión? (TODAS deben cumplirse)
        ├── motor habilitado
        ├── confianza >= min_confidence
        ├── abiertas < max_positions
        ├── abiertas hoy (UTC) < max_daily_trades
        ├── ningún OPEN en el mismo símbolo
        └── balance virtual >= position_size
        │
        ├── NO → descartar (log, no es error)
        └── SÍ → Position OPEN al precio vigente del Price Feed
                    │
                  tick llega
                    │
                    ▼
               on_price_tick(prices)
                    │
                    ├── (1) SL cruzado     → HIT_SL
                    ├── (2) algún TP       → HIT_TP
                    └── (3) tiempo >= límite → TIME_LIMIT

Se evalúa SL ANTES que TP (conservador: si el mismo tick cumple ambos,
la posición cierra como stop). Máximo un cierre por posición por tick.

EFECTOS LATERALES (fire-and-forget):
  La transición se confirma en memoria ANTES de invocar callbacks.
  gateway.on_position_open / on_position_close / on_session_update y
  ledger.record_outcome son independientes: el fallo de uno se loguea y
  no bloquea a los demás ni revierte el estado.

STOP ≠ HALT:
  stop() solo deshabilita admisiones. Las posiciones abiertas siguen
  evaluándose contra cada tick (stops/targets/time limit funcionan).

THREADING:
  Todo corre en un solo event-loop asyncio. No se necesitan locks:
  submit_signal() y on_price_tick() son atómicos respecto al loop.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from simtrader.application.dto.engine_config import EngineConfig
from simtrader.domain.entities.position import ExitReason, Position
from simtrader.domain.entities.signal import Signal
from simtrader.domain.exceptions.domain_errors import (
    InvalidPositionError,
    PositionNotFoundError,
)
from simtrader.domain.services.performance_ledger import PerformanceLedger
from simtrader.domain.services.stats_calculator import (
    compute_engine_stats,
    count_opened_on,
    utc_day,
)
from simtrader.domain.value_objects.engine_stats import EngineStats
from simtrader.domain.value_objects.price_quote import PriceQuote
from simtrader.shared.events.listener_registry import ListenerRegistry
from simtrader.shared.logging.logger import get_logger

logger = get_logger("position_engine")

PriceProvider = Callable[[str], Optional[float]]
EngineCallback = Callable[[list[Position], EngineStats], None]

# Motivos de rechazo (solo diagnóstico)
REJECT_DISABLED = "engine_disabled"
REJECT_LOW_CONFIDENCE = "low_confidence"
REJECT_MAX_POSITIONS = "max_positions"
REJECT_MAX_DAILY = "max_daily_trades"
REJECT_DUPLICATE_SYMBOL = "duplicate_symbol"
REJECT_BALANCE = "insufficient_balance"


class PositionEngine:
    """
    Motor de posiciones simuladas.

    Responsabilidades:
      1. Admitir señales bajo las reglas de riesgo de EngineConfig.
      2. Evaluar SL / TP / time limit en cada tick.
      3. Cerrar manualmente a pedido.
      4. Proyectar EngineStats desde el conjunto de posiciones.
      5. Notificar gateway, ledger y suscriptores.

    Invariantes:
      - Máximo 1 posición OPEN por símbolo.
      - Una posición se cierra exactamente una vez.
      - virtual_balance == starting_balance + Σ P/L realizado.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        *,
        ledger: Optional[PerformanceLedger] = None,
        gateway: Any = None,
        price_provider: Optional[PriceProvider] = None,
        adaptive_confidence: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config or EngineConfig()
        self._ledger = ledger
        self._gateway = gateway
        self._price_provider = price_provider
        self._adaptive_confidence = adaptive_confidence
        self._clock = clock

        # Posiciones OPEN por id (orden de apertura) + historial cerrado
        self._open: dict[str, Position] = {}
        self._closed: list[Position] = []
        self._last_prices: dict[str, float] = {}

        self._session_id: Optional[str] = None
        self._listeners = ListenerRegistry("position_engine")
        self._pending_callbacks: set[asyncio.Future] = set()

    # ════════════════════════════════════════════════════════════════
    #  CONFIGURACIÓN / CICLO DE VIDA
    # ════════════════════════════════════════════════════════════════

    @property
    def config(self) -> EngineConfig:
        return self._config

    def get_config(self) -> EngineConfig:
        return self._config

    def update_config(self, **changes: Any) -> EngineConfig:
        """
        Reemplaza la configuración con los cambios validados.

        Raises:
            ConfigurationError: valor inválido o clave desconocida. La
            configuración vigente no se modifica.
        """
        new_config = self._config.with_changes(**changes)
        self._config = new_config
        logger.info("⚙️ Config actualizada: %s", changes)
        self._notify()
        return new_config

    def replace_config(self, config: EngineConfig) -> None:
        """Reemplazo completo (ej. restaurar desde snapshot)."""
        self._config = config
        self._notify()

    def start(self) -> None:
        """Habilita admisiones. Idempotente."""
        if self._config.enabled:
            logger.debug("Motor ya habilitado – start() ignorado")
            return
        self._config = self._config.model_copy(update={"enabled": True})
        logger.info("🤖 Position engine iniciado")
        self._notify()

    def stop(self) -> None:
        """Deshabilita admisiones; las posiciones abiertas se siguen evaluando."""
        if not self._config.enabled:
            logger.debug("Motor ya detenido – stop() ignorado")
            return
        self._config = self._config.model_copy(update={"enabled": False})
        logger.info("🤖 Position engine detenido (%d posiciones abiertas)", len(self._open))
        self._notify()

    @property
    def is_running(self) -> bool:
        return self._config.enabled

    def reset(self) -> None:
        """
        Limpia posiciones y vuelve el balance al inicial.
        Deshabilita el motor. NO toca el Performance Ledger.
        """
        self._open.clear()
        self._closed.clear()
        self._config = self._config.model_copy(update={"enabled": False})
        logger.info("🔄 Position engine reseteado")
        self._notify()

    def set_session_id(self, session_id: Optional[str]) -> None:
        self._session_id = session_id

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    # ════════════════════════════════════════════════════════════════
    #  1. ADMISIÓN (Signal → OPEN | rechazo)
    # ════════════════════════════════════════════════════════════════

    def submit_signal(self, signal: Signal) -> Optional[Position]:
        """
        Evalúa una señal y abre una posición si pasa todas las reglas.

        Returns:
            Snapshot de la posición abierta, o None si fue rechazada.
        """
        confidence = self._adjusted_confidence(signal)
        reason = self._rejection_reason(signal.symbol, confidence)
        if reason is not None:
            logger.debug(
                "🚫 Señal %s rechazada | sym=%s conf=%.1f (base=%.1f) motivo=%s",
                signal.id, signal.symbol, confidence, signal.confidence, reason,
            )
            return None

        config = self._config
        now = self._clock()
        position = Position(
            symbol=signal.symbol,
            direction=signal.direction,
            entry_price=self._entry_price(signal),
            stop_loss=signal.stop_loss,
            take_profits=signal.take_profits,
            confidence=confidence,
            base_confidence=signal.confidence,
            size=config.position_size,
            open_timestamp=now,
            max_duration_seconds=config.time_limit_seconds,
            signal_id=signal.id,
        )
        self._open[position.id] = position

        logger.info(
            "📈 Posición OPEN | id=%s sym=%s %s entry=%.5f SL=%.5f TP=%s conf=%.1f size=%.2f",
            position.id, position.symbol, position.direction.value,
            position.entry_price, position.stop_loss,
            ",".join(f"{tp:.5f}" for tp in position.take_profits),
            confidence, position.size,
        )

        self._dispatch("on_position_open", position.snapshot())
        self._notify()
        return position.snapshot()

    def process_signals(self, signals: Iterable[Signal]) -> list[Position]:
        """
        Evalúa un lote en orden de confianza descendente (orden estable).

        Returns:
            Posiciones abiertas en este lote.
        """
        opened = []
        for signal in sorted(signals, key=lambda s: s.confidence, reverse=True):
            position = self.submit_signal(signal)
            if position is not None:
                opened.append(position)
        return opened

    def can_take_position(self, symbol: str, confidence: float = 100.0) -> bool:
        """¿Se admitiría hoy una señal para `symbol` con esta confianza?"""
        return self._rejection_reason(symbol, confidence) is None

    def _adjusted_confidence(self, signal: Signal) -> float:
        """Confianza tras el ledger. Si el ledger falla → identidad."""
        if self._ledger is None or not self._adaptive_confidence:
            return signal.confidence
        try:
            return self._ledger.adjust_confidence(signal.symbol, signal.confidence)
        except Exception:
            logger.exception(
                "❌ Ledger no disponible para ajustar %s – se usa confianza base",
                signal.symbol,
            )
            return signal.confidence

    def _rejection_reason(self, symbol: str, confidence: float) -> Optional[str]:
        config = self._config
        if not config.enabled:
            return REJECT_DISABLED
        if confidence < config.min_confidence:
            return REJECT_LOW_CONFIDENCE
        if len(self._open) >= config.max_positions:
            return REJECT_MAX_POSITIONS
        if self.trades_today() >= config.max_daily_trades:
            return REJECT_MAX_DAILY
        if any(p.symbol == symbol for p in self._open.values()):
            return REJECT_DUPLICATE_SYMBOL
        if self.virtual_balance < config.position_size:
            return REJECT_BALANCE
        return None

    def _entry_price(self, signal: Signal) -> float:
        """Precio vigente del feed → último tick visto → entry de la señal."""
        if self._price_provider is not None:
            try:
                price = self._price_provider(signal.symbol)
            except Exception:
                logger.exception("❌ Price provider falló para %s", signal.symbol)
                price = None
            if price is not None:
                return price
        price = self._last_prices.get(signal.symbol)
        if price is not None:
            return price
        logger.debug(
            "Sin precio de mercado para %s – se usa entry de la señal %.5f",
            signal.symbol, signal.entry,
        )
        return signal.entry

    def trades_today(self) -> int:
        """Posiciones abiertas durante el día UTC actual."""
        today = utc_day(self._clock())
        return count_opened_on(self._all_positions(), today)

    # ════════════════════════════════════════════════════════════════
    #  2. EVALUACIÓN DE SALIDAS (tick)
    # ════════════════════════════════════════════════════════════════

    def on_price_tick(
        self,
        prices: Mapping[str, Union[float, PriceQuote]],
        timestamp: Optional[float] = None,
    ) -> list[Position]:
        """
        Evalúa todas las posiciones abiertas contra el snapshot de precios.

        Args:
            prices: {symbol: precio} o {symbol: PriceQuote} (Price Feed).
            timestamp: Epoch del tick. None → reloj del motor.

        Returns:
            Snapshots de las posiciones cerradas en este tick.
        """
        now = self._clock() if timestamp is None else timestamp

        for symbol, value in prices.items():
            self._last_prices[symbol] = (
                value.price if isinstance(value, PriceQuote) else float(value)
            )

        closed = []
        for position in list(self._open.values()):
            price = self._last_prices.get(position.symbol)
            if price is None or position.symbol not in prices:
                continue

            position.mark(price)
            reason = self._exit_reason(position, price, now)
            if reason is not None:
                closed.append(self._close(position, price, reason, now))

        self._notify()
        return closed

    @staticmethod
    def _exit_reason(position: Position, price: float, now: float) -> Optional[ExitReason]:
        """Prioridad fija: stop → target → time limit. Primera que aplica gana."""
        if position.stop_breached(price):
            return ExitReason.HIT_SL
        if position.target_reached(price):
            return ExitReason.HIT_TP
        if position.held_for(now) >= position.max_duration_seconds:
            return ExitReason.TIME_LIMIT
        return None

    # ════════════════════════════════════════════════════════════════
    #  3. CIERRE
    # ════════════════════════════════════════════════════════════════

    def manual_close(self, position_id: str, price: float) -> Position:
        """
        Cierra inmediatamente una posición abierta al precio dado (MANUAL).

        Raises:
            InvalidPositionError: precio <= 0.
            PositionNotFoundError: no hay posición OPEN con ese id.
        """
        if price is None or price <= 0:
            raise InvalidPositionError(
                f"Precio de cierre inválido: {price}", position_id=position_id,
            )
        position = self._open.get(position_id)
        if position is None:
            raise PositionNotFoundError(position_id)

        snapshot = self._close(position, price, ExitReason.MANUAL, self._clock())
        self._notify()
        return snapshot

    def _close(
        self,
        position: Position,
        price: float,
        reason: ExitReason,
        now: float,
    ) -> Position:
        """Transición en memoria PRIMERO, luego efectos laterales aislados."""
        profit_loss = position.close(exit_price=price, reason=reason, timestamp=now)
        del self._open[position.id]
        self._closed.append(position)

        logger.info(
            "%s Posición CLOSED (%s) | id=%s sym=%s entry=%.5f exit=%.5f pl=%+.4f dur=%.0fs",
            "🟢" if profit_loss > 0 else "🔴", reason.value,
            position.id, position.symbol, position.entry_price, price,
            profit_loss, position.held_for(now),
        )

        snapshot = position.snapshot()
        self._dispatch("on_position_close", snapshot)
        self._learn(snapshot)
        if self._session_id is not None:
            self._dispatch("on_session_update", self._session_id, self.get_stats())
        return snapshot

    def _learn(self, position: Position) -> None:
        """Alimenta el ledger con la confianza BASE (misma clave que el ajuste)."""
        if self._ledger is None:
            return
        try:
            metric = self._ledger.record_outcome(
                position.symbol, position.base_confidence, position.profit_loss,
            )
        except Exception:
            logger.exception("❌ Ledger falló registrando %s", position.id)
            return
        self._dispatch("on_metric_update", metric)

    # ════════════════════════════════════════════════════════════════
    #  GATEWAY (fire-and-forget)
    # ════════════════════════════════════════════════════════════════

    def _dispatch(self, method: str, *args: Any) -> None:
        """
        Invoca gateway.<method>(*args) sin bloquear ni propagar errores.

        - Handler síncrono → se llama directo.
        - Corutina + loop activo → task; el error se loguea al terminar.
        - Corutina sin loop → se ejecuta hasta completar (modo script).
        """
        if self._gateway is None:
            return
        handler = getattr(self._gateway, method, None)
        if handler is None:
            return

        try:
            result = handler(*args)
        except Exception:
            logger.exception("❌ Gateway.%s falló", method)
            return

        if not inspect.isawaitable(result):
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is None:
            if not asyncio.iscoroutine(result):
                logger.warning("Gateway.%s devolvió un awaitable sin event loop", method)
                return
            try:
                asyncio.run(result)
            except Exception:
                logger.exception("❌ Gateway.%s falló", method)
            return

        future = asyncio.ensure_future(result)
        self._pending_callbacks.add(future)
        future.add_done_callback(lambda f: self._on_callback_done(method, f))

    def _on_callback_done(self, method: str, future: asyncio.Future) -> None:
        self._pending_callbacks.discard(future)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error("❌ Gateway.%s falló: %s", method, exc, exc_info=exc)

    async def wait_for_callbacks(self) -> None:
        """Espera los callbacks async pendientes (shutdown / tests)."""
        while self._pending_callbacks:
            await asyncio.gather(*list(self._pending_callbacks), return_exceptions=True)

    # ════════════════════════════════════════════════════════════════
    #  CONSULTAS
    # ════════════════════════════════════════════════════════════════

    def _all_positions(self) -> list[Position]:
        return list(self._open.values()) + self._closed

    def get_open_positions(self) -> list[Position]:
        return [p.snapshot() for p in self._open.values()]

    def get_closed_positions(self) -> list[Position]:
        return [p.snapshot() for p in self._closed]

    def get_positions(self) -> tuple[list[Position], list[Position]]:
        """(abiertas, cerradas) como copias de solo lectura."""
        return self.get_open_positions(), self.get_closed_positions()

    def get_stats(self) -> EngineStats:
        """Proyección pura del conjunto de posiciones + config."""
        return compute_engine_stats(
            self._all_positions(),
            starting_balance=self._config.starting_balance,
            is_running=self._config.enabled,
            now=self._clock(),
        )

    @property
    def virtual_balance(self) -> float:
        return self._config.starting_balance + sum(p.profit_loss for p in self._closed)

    # ════════════════════════════════════════════════════════════════
    #  SUSCRIPCIÓN
    # ════════════════════════════════════════════════════════════════

    def subscribe(self, callback: EngineCallback) -> Callable[[], None]:
        """callback(open_positions, stats) en cada cambio de estado."""
        return self._listeners.subscribe(callback)

    def _notify(self) -> None:
        if len(self._listeners) == 0:
            return
        self._listeners.notify(self.get_open_positions(), self.get_stats())
