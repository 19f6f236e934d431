"""Pytest fixtures: fake clock, seeded feed, engine and ledger for deterministic tests."""

import random

import pytest

from simtrader.application.dto.engine_config import EngineConfig
from simtrader.application.services.position_engine import PositionEngine
from simtrader.application.services.price_feed import PriceFeed
from simtrader.domain.entities.signal import Direction, Signal
from simtrader.domain.services.performance_ledger import PerformanceLedger

# 2023-11-14 22:13:20 UTC
T0 = 1_700_000_000.0


class FakeClock:
    """Reloj manual: el test decide cuándo avanza el tiempo."""

    def __init__(self, start: float = T0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class RecordingGateway:
    """Gateway síncrono que guarda cada llamada."""

    def __init__(self) -> None:
        self.opened = []
        self.closed = []
        self.sessions = []
        self.metrics = []

    def on_position_open(self, position) -> None:
        self.opened.append(position)

    def on_position_close(self, position) -> None:
        self.closed.append(position)

    def on_session_update(self, session_id, stats) -> None:
        self.sessions.append((session_id, stats))

    def on_metric_update(self, metric) -> None:
        self.metrics.append(metric)


def make_signal(
    symbol: str = "EURUSD",
    direction: Direction = Direction.LONG,
    confidence: float = 75.0,
    entry: float = 1.1000,
    stop_loss: float = 1.0950,
    take_profits: tuple = (1.1100,),
    **kwargs,
) -> Signal:
    return Signal(
        symbol=symbol,
        direction=direction,
        confidence=confidence,
        entry=entry,
        stop_loss=stop_loss,
        take_profits=take_profits,
        **kwargs,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def config() -> EngineConfig:
    return EngineConfig(enabled=True)


@pytest.fixture
def ledger() -> PerformanceLedger:
    return PerformanceLedger()


@pytest.fixture
def gateway() -> RecordingGateway:
    return RecordingGateway()


@pytest.fixture
def engine(config: EngineConfig, clock: FakeClock) -> PositionEngine:
    """Motor habilitado sin ledger ni gateway (entry = precio de la señal)."""
    return PositionEngine(config, clock=clock)


@pytest.fixture
def feed(rng: random.Random, clock: FakeClock) -> PriceFeed:
    feed = PriceFeed(volatility=0.0001, rng=rng, clock=clock)
    feed.initialize({"EURUSD": 1.10000, "GBPUSD": 1.27000})
    return feed
