"""
SimTrader - Price Feed (random walk acotado)
=============================================
Generador de precios sintéticos. No sabe nada de posiciones ni señales.

═══════════════════════════════════════════════════════════════
            MODELO DE PRECIO
═══════════════════════════════════════════════════════════════

  movement  = (uniform(-1, 1) + trend_bias) × volatility
  new_price = round(prev_price + movement, 5)     # fracción de pip
  change    = round(new_price - prev_price, 5)
  change_%  = round(change / prev_price × 100, 4) # vs tick ANTERIOR

  trend_bias ∈ [-1, 1] (clamp explícito)
  volatility ≥ 0      (valor negativo → ConfigurationError)

═══════════════════════════════════════════════════════════════
            SCHEDULING
═══════════════════════════════════════════════════════════════

  start() lanza UNA task asyncio que duerme `update_interval` segundos
  y ejecuta tick(). Los ticks nunca se solapan (un solo loop, una sola
  task). stop() cancela la task; tras retornar no se dispara ningún tick
  más: la task verifica que sigue siendo la task vigente antes de cada
  tick, aunque la cancelación aún no se haya entregado.

SUSCRIPTORES:
  Cada tick entrega el snapshot COMPLETO {symbol: PriceQuote}. Sin
  colas: quien se perdió un tick solo ve el último estado.
"""

from __future__ import annotations

import asyncio
import random
import time
from typing import Callable, Mapping, Optional

from simtrader.domain.exceptions.domain_errors import ConfigurationError
from simtrader.domain.value_objects.price_quote import PriceQuote
from simtrader.shared.events.listener_registry import ListenerRegistry
from simtrader.shared.logging.logger import get_logger

logger = get_logger("price_feed")

PRICE_DECIMALS = 5
PERCENT_DECIMALS = 4

PriceCallback = Callable[[dict[str, PriceQuote]], None]


class PriceFeed:
    """
    Feed de precios simulado con volatilidad y sesgo de tendencia.

    Responsabilidades:
      1. Mantener el último PriceQuote por símbolo.
      2. Avanzar todos los precios en cada tick.
      3. Publicar el snapshot a los suscriptores.
    """

    def __init__(
        self,
        volatility: float = 0.0001,
        trend_bias: float = 0.0,
        update_interval: float = 1.0,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._prices: dict[str, PriceQuote] = {}
        self._volatility = 0.0
        self._trend_bias = 0.0
        self._update_interval = 1.0
        self._rng = rng or random.Random()
        self._clock = clock
        self._task: Optional[asyncio.Task] = None
        self._listeners = ListenerRegistry("price_feed")
        self._tick_count = 0

        self.set_volatility(volatility)
        self.set_trend_bias(trend_bias)
        self.set_update_interval(update_interval)

    # ════════════════════════════════════════════════════════════════
    #  ESTADO
    # ════════════════════════════════════════════════════════════════

    def initialize(self, initial_prices: Mapping[str, float]) -> None:
        """Siembra (o re-siembra) precios iniciales por símbolo."""
        invalid = {s: p for s, p in initial_prices.items() if p is None or p <= 0}
        if invalid:
            symbol = next(iter(invalid))
            raise ConfigurationError(
                f"Precio inicial inválido para {symbol}: {invalid[symbol]}",
                field="initial_prices", value=invalid[symbol],
            )

        now = self._clock()
        for symbol, price in initial_prices.items():
            price = round(float(price), PRICE_DECIMALS)
            self._prices[symbol] = PriceQuote(
                symbol=symbol,
                price=price,
                previous_price=price,
                timestamp=now,
            )
        logger.info("📊 Precios inicializados: %s", ", ".join(sorted(initial_prices)))

    def tick(self) -> dict[str, PriceQuote]:
        """Avanza todos los símbolos un paso y notifica a los suscriptores."""
        now = self._clock()
        volatility = self._volatility
        bias = self._trend_bias

        for symbol, quote in list(self._prices.items()):
            previous = quote.price
            movement = (self._rng.uniform(-1.0, 1.0) + bias) * volatility
            new_price = round(previous + movement, PRICE_DECIMALS)
            change = new_price - previous
            change_percent = (change / previous) * 100.0 if previous else 0.0

            self._prices[symbol] = PriceQuote(
                symbol=symbol,
                price=new_price,
                previous_price=previous,
                change=round(change, PRICE_DECIMALS),
                change_percent=round(change_percent, PERCENT_DECIMALS),
                timestamp=now,
            )

        self._tick_count += 1
        snapshot = self.get_prices()
        self._listeners.notify(snapshot)
        return snapshot

    def get_prices(self) -> dict[str, PriceQuote]:
        """Snapshot de solo lectura (dict nuevo de quotes inmutables)."""
        return dict(self._prices)

    def get_price(self, symbol: str) -> Optional[PriceQuote]:
        return self._prices.get(symbol)

    def current_price(self, symbol: str) -> Optional[float]:
        quote = self._prices.get(symbol)
        return quote.price if quote is not None else None

    # ════════════════════════════════════════════════════════════════
    #  PARÁMETROS (aplican en el próximo tick)
    # ════════════════════════════════════════════════════════════════

    def set_volatility(self, volatility: float) -> None:
        if volatility is None or volatility < 0:
            raise ConfigurationError(
                f"Volatilidad inválida: {volatility}", field="volatility", value=volatility,
            )
        self._volatility = float(volatility)

    def set_trend_bias(self, bias: float) -> None:
        """Sesgo de tendencia, clamp explícito a [-1, 1]."""
        self._trend_bias = max(-1.0, min(1.0, float(bias)))

    def set_update_interval(self, seconds: float) -> None:
        """Cambia el intervalo; si está corriendo, reinicia el timer."""
        if seconds is None or seconds <= 0:
            raise ConfigurationError(
                f"Intervalo inválido: {seconds}", field="update_interval", value=seconds,
            )
        self._update_interval = float(seconds)
        if self.is_running:
            self.stop()
            self.start()

    @property
    def volatility(self) -> float:
        return self._volatility

    @property
    def trend_bias(self) -> float:
        return self._trend_bias

    @property
    def update_interval(self) -> float:
        return self._update_interval

    @property
    def tick_count(self) -> int:
        return self._tick_count

    # ════════════════════════════════════════════════════════════════
    #  CICLO DE VIDA
    # ════════════════════════════════════════════════════════════════

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """
        Lanza la task periódica en el event loop activo.
        Un segundo start() mientras corre es un no-op (se loguea).
        """
        if self.is_running:
            logger.warning("Price feed ya está corriendo – start() ignorado")
            return

        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(), name="price-feed")
        logger.info("📊 Price feed iniciado (intervalo=%.3fs)", self._update_interval)

    def stop(self) -> None:
        """Cancela la task periódica. Idempotente."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        logger.info("📊 Price feed detenido (%d ticks)", self._tick_count)

    async def _run(self) -> None:
        me = asyncio.current_task()
        try:
            while self._task is me:
                await asyncio.sleep(self._update_interval)
                if self._task is not me:
                    break
                self.tick()
        except asyncio.CancelledError:
            logger.debug("Task del price feed cancelada")
            raise

    # ════════════════════════════════════════════════════════════════
    #  SUSCRIPCIÓN
    # ════════════════════════════════════════════════════════════════

    def subscribe(self, callback: PriceCallback) -> Callable[[], None]:
        """Registra un callback por tick. Devuelve la función para desuscribir."""
        return self._listeners.subscribe(callback)
