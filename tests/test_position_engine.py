"""Tests for the position engine: admission, exits, manual close, side effects, lifecycle."""

import asyncio

import pytest

from conftest import FakeClock, RecordingGateway, make_signal
from simtrader.application.dto.engine_config import EngineConfig
from simtrader.application.services.position_engine import PositionEngine
from simtrader.domain.entities.position import ExitReason
from simtrader.domain.entities.signal import Direction
from simtrader.domain.exceptions.domain_errors import (
    ConfigurationError,
    InvalidPositionError,
    PositionNotFoundError,
)
from simtrader.domain.services.performance_ledger import PerformanceLedger
from simtrader.domain.value_objects.price_quote import PriceQuote


def _train_eurusd(ledger: PerformanceLedger) -> None:
    for _ in range(8):
        ledger.record_outcome("EURUSD", 72, 10.0)
    for _ in range(2):
        ledger.record_outcome("EURUSD", 72, -5.0)


# ---------------------------------------------------------------------------
# Admission
# ---------------------------------------------------------------------------


class TestAdmission:
    def test_opens_position_at_signal_entry_without_market(self, engine) -> None:
        position = engine.submit_signal(make_signal())
        assert position is not None
        assert position.is_open
        assert position.entry_price == 1.1
        assert position.size == 1000
        assert position.max_duration_seconds == 240 * 60

    def test_duplicate_symbol_rejected(self, engine) -> None:
        assert engine.submit_signal(make_signal("EURUSD", confidence=75)) is not None
        assert engine.submit_signal(make_signal("EURUSD", confidence=80)) is None
        open_positions, _ = engine.get_positions()
        assert len(open_positions) == 1
        assert open_positions[0].confidence == 75

    def test_second_signal_same_symbol_single_slot(self, clock) -> None:
        engine = PositionEngine(
            EngineConfig(enabled=True, min_confidence=70, max_positions=1, max_daily_trades=5),
            clock=clock,
        )
        first = engine.submit_signal(make_signal("EURUSD", confidence=80))
        second = engine.submit_signal(make_signal("EURUSD", confidence=80))

        assert first is not None
        assert second is None
        open_positions, closed_positions = engine.get_positions()
        assert [p.id for p in open_positions] == [first.id]
        assert closed_positions == []
        assert engine.get_stats().total_trades == 1

    def test_disabled_engine_rejects(self, clock) -> None:
        engine = PositionEngine(EngineConfig(), clock=clock)
        assert engine.submit_signal(make_signal()) is None

    def test_low_confidence_rejected(self, engine) -> None:
        assert engine.submit_signal(make_signal(confidence=69.9)) is None
        assert engine.submit_signal(make_signal(confidence=70)) is not None

    def test_max_positions(self, engine) -> None:
        for symbol in ("EURUSD", "GBPUSD", "USDJPY"):
            assert engine.submit_signal(make_signal(symbol)) is not None
        assert engine.submit_signal(make_signal("AUDUSD")) is None
        assert engine.get_stats().open_positions == 3

    def test_daily_limit_resets_next_utc_day(self, clock) -> None:
        engine = PositionEngine(
            EngineConfig(enabled=True, max_daily_trades=2, max_positions=5), clock=clock,
        )
        first = engine.submit_signal(make_signal("EURUSD"))
        engine.submit_signal(make_signal("GBPUSD"))
        engine.manual_close(first.id, 1.1)
        # cerrar no libera cupo diario
        assert engine.submit_signal(make_signal("USDJPY")) is None
        assert engine.trades_today() == 2

        clock.advance(24 * 3600)
        assert engine.submit_signal(make_signal("USDJPY")) is not None

    def test_insufficient_balance_rejected(self, clock) -> None:
        engine = PositionEngine(
            EngineConfig(enabled=True, starting_balance=1000, position_size=1000),
            clock=clock,
        )
        position = engine.submit_signal(make_signal())
        engine.manual_close(position.id, 1.0990)  # pierde 1.0
        assert engine.virtual_balance == pytest.approx(999.0)
        assert engine.submit_signal(make_signal("GBPUSD")) is None

    def test_can_take_position(self, engine) -> None:
        assert engine.can_take_position("EURUSD", 75)
        engine.submit_signal(make_signal("EURUSD"))
        assert not engine.can_take_position("EURUSD", 75)
        assert not engine.can_take_position("GBPUSD", 10)

    def test_process_signals_highest_confidence_first(self, clock) -> None:
        engine = PositionEngine(EngineConfig(enabled=True, max_positions=1), clock=clock)
        opened = engine.process_signals([
            make_signal("EURUSD", confidence=72),
            make_signal("GBPUSD", confidence=91),
            make_signal("USDJPY", confidence=80),
        ])
        assert [p.symbol for p in opened] == ["GBPUSD"]

    def test_entry_uses_price_provider(self, config, clock) -> None:
        engine = PositionEngine(config, clock=clock, price_provider=lambda s: 1.1023)
        assert engine.submit_signal(make_signal()).entry_price == 1.1023

    def test_entry_falls_back_to_last_tick(self, engine) -> None:
        engine.on_price_tick({"EURUSD": 1.1011})
        assert engine.submit_signal(make_signal()).entry_price == 1.1011

    def test_returned_position_is_detached(self, engine) -> None:
        position = engine.submit_signal(make_signal())
        position.stop_loss = 0.5
        assert engine.get_open_positions()[0].stop_loss == 1.0950


# ---------------------------------------------------------------------------
# Adaptive confidence
# ---------------------------------------------------------------------------


class TestAdaptiveConfidence:
    def test_trained_ledger_lifts_signal_over_threshold(self, clock, ledger) -> None:
        _train_eurusd(ledger)
        config = EngineConfig(enabled=True, min_confidence=80)

        plain = PositionEngine(config, clock=clock)
        assert plain.submit_signal(make_signal(confidence=72)) is None

        adaptive = PositionEngine(config, ledger=ledger, clock=clock)
        position = adaptive.submit_signal(make_signal(confidence=72))
        assert position is not None
        assert position.confidence > 80
        assert position.base_confidence == 72

    def test_adaptive_confidence_can_be_disabled(self, clock, ledger) -> None:
        _train_eurusd(ledger)
        engine = PositionEngine(
            EngineConfig(enabled=True, min_confidence=80),
            ledger=ledger, adaptive_confidence=False, clock=clock,
        )
        assert engine.submit_signal(make_signal(confidence=72)) is None

    def test_close_feeds_ledger_with_base_confidence(self, clock, ledger) -> None:
        engine = PositionEngine(EngineConfig(enabled=True), ledger=ledger, clock=clock)
        position = engine.submit_signal(make_signal(confidence=72))
        engine.manual_close(position.id, 1.1050)
        metric = ledger.get_metric("EURUSD", 72)
        assert metric.total_trades == 1
        assert metric.avg_profit == pytest.approx(5.0)

    def test_broken_ledger_does_not_block_admission_or_close(self, config, clock, gateway) -> None:
        class BrokenLedger(PerformanceLedger):
            def adjust_confidence(self, symbol, base_confidence):
                raise RuntimeError("ledger down")

            def record_outcome(self, symbol, confidence_at_entry, profit_loss):
                raise RuntimeError("ledger down")

        engine = PositionEngine(config, ledger=BrokenLedger(), gateway=gateway, clock=clock)
        position = engine.submit_signal(make_signal(confidence=75))
        assert position.confidence == 75

        engine.manual_close(position.id, 1.1)
        assert len(gateway.closed) == 1
        assert gateway.metrics == []
        assert engine.get_stats().closed_positions == 1


# ---------------------------------------------------------------------------
# Exit evaluation
# ---------------------------------------------------------------------------


class TestExits:
    def test_stop_scenario(self, engine) -> None:
        engine.submit_signal(make_signal(entry=1.1000, stop_loss=1.0950, take_profits=(1.1100,)))
        assert engine.on_price_tick({"EURUSD": 1.0960}) == []

        closed = engine.on_price_tick({"EURUSD": 1.0949})
        assert len(closed) == 1
        assert closed[0].exit_reason is ExitReason.HIT_SL
        assert closed[0].exit_price == 1.0949
        assert closed[0].profit_loss == pytest.approx((1.0949 - 1.1000) * 1000)

    def test_stop_wins_over_target_on_same_tick(self, engine) -> None:
        # niveles cruzados: un precio entre 1.1050 y 1.1060 cumple ambos
        engine.submit_signal(make_signal(stop_loss=1.1060, take_profits=(1.1050,)))
        closed = engine.on_price_tick({"EURUSD": 1.1055})
        assert closed[0].exit_reason is ExitReason.HIT_SL

    def test_take_profit_long(self, engine) -> None:
        engine.submit_signal(make_signal(take_profits=(1.1100, 1.1200)))
        closed = engine.on_price_tick({"EURUSD": 1.1100})
        assert closed[0].exit_reason is ExitReason.HIT_TP
        assert closed[0].profit_loss == pytest.approx(10.0)

    def test_short_position(self, engine) -> None:
        engine.submit_signal(make_signal(
            direction=Direction.SHORT, stop_loss=1.1050, take_profits=(1.0900,),
        ))
        assert engine.on_price_tick({"EURUSD": 1.0950}) == []
        closed = engine.on_price_tick({"EURUSD": 1.0900})
        assert closed[0].exit_reason is ExitReason.HIT_TP
        assert closed[0].profit_loss == pytest.approx(10.0)

    def test_time_limit(self, engine, clock: FakeClock) -> None:
        engine.submit_signal(make_signal())
        clock.advance(240 * 60 - 1)
        assert engine.on_price_tick({"EURUSD": 1.1010}) == []
        clock.advance(1)
        closed = engine.on_price_tick({"EURUSD": 1.1010})
        assert closed[0].exit_reason is ExitReason.TIME_LIMIT
        assert closed[0].profit_loss == pytest.approx(1.0)

    def test_time_limit_frozen_at_open(self, engine, clock: FakeClock) -> None:
        engine.submit_signal(make_signal())
        engine.update_config(time_limit=1)
        clock.advance(120)
        assert engine.on_price_tick({"EURUSD": 1.1}) == []

    def test_explicit_tick_timestamp(self, engine, clock: FakeClock) -> None:
        engine.submit_signal(make_signal())
        closed = engine.on_price_tick({"EURUSD": 1.1}, timestamp=clock.now + 240 * 60)
        assert closed[0].exit_reason is ExitReason.TIME_LIMIT

    def test_symbols_missing_from_tick_are_untouched(self, engine) -> None:
        engine.submit_signal(make_signal("EURUSD"))
        engine.on_price_tick({"GBPUSD": 0.5})
        assert engine.get_stats().open_positions == 1

    def test_accepts_price_quotes(self, engine) -> None:
        engine.submit_signal(make_signal())
        quote = PriceQuote(symbol="EURUSD", price=1.0949, previous_price=1.0951)
        closed = engine.on_price_tick({"EURUSD": quote})
        assert closed[0].exit_reason is ExitReason.HIT_SL

    def test_mark_to_market(self, engine) -> None:
        engine.submit_signal(make_signal())
        engine.on_price_tick({"EURUSD": 1.1020})
        position = engine.get_open_positions()[0]
        assert position.current_price == 1.1020
        assert position.unrealized_pl == pytest.approx(2.0)

    def test_stopped_engine_still_evaluates_exits(self, engine) -> None:
        engine.submit_signal(make_signal())
        engine.stop()
        closed = engine.on_price_tick({"EURUSD": 1.0900})
        assert len(closed) == 1
        assert engine.submit_signal(make_signal("GBPUSD")) is None


# ---------------------------------------------------------------------------
# Manual close
# ---------------------------------------------------------------------------


class TestManualClose:
    def test_manual_close(self, engine) -> None:
        position = engine.submit_signal(make_signal())
        closed = engine.manual_close(position.id, 1.1030)
        assert closed.exit_reason is ExitReason.MANUAL
        assert closed.profit_loss == pytest.approx(3.0)
        assert engine.get_open_positions() == []

    def test_unknown_id(self, engine) -> None:
        with pytest.raises(PositionNotFoundError) as exc_info:
            engine.manual_close("nope", 1.1)
        assert exc_info.value.to_dict()["error"] == "POSITION_NOT_FOUND"

    def test_already_closed(self, engine) -> None:
        position = engine.submit_signal(make_signal())
        engine.manual_close(position.id, 1.1)
        with pytest.raises(PositionNotFoundError):
            engine.manual_close(position.id, 1.1)

    def test_non_positive_price(self, engine) -> None:
        position = engine.submit_signal(make_signal())
        with pytest.raises(InvalidPositionError):
            engine.manual_close(position.id, 0)
        assert len(engine.get_open_positions()) == 1


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------


class TestStats:
    def test_balance_tracks_realized_pl(self, clock) -> None:
        engine = PositionEngine(EngineConfig(enabled=True, max_positions=5), clock=clock)
        a = engine.submit_signal(make_signal("EURUSD"))
        b = engine.submit_signal(make_signal("GBPUSD", entry=1.27, stop_loss=1.26, take_profits=(1.28,)))
        engine.submit_signal(make_signal("USDJPY", entry=150.0, stop_loss=149.0, take_profits=(151.0,)))
        engine.manual_close(a.id, 1.1050)
        engine.manual_close(b.id, 1.2690)

        stats = engine.get_stats()
        assert stats.total_trades == 3
        assert stats.open_positions == 1
        assert stats.closed_positions == 2
        assert stats.winning_trades == 1
        assert stats.losing_trades == 1
        assert stats.net_pl == pytest.approx(5.0 - 1.0)
        assert stats.virtual_balance == pytest.approx(10_000 + 4.0)
        assert stats.win_rate == pytest.approx(50.0)
        assert stats.exits_by_reason == {"MANUAL": 2}
        assert stats.trades_today == 3

    def test_is_running_reflects_config(self, engine) -> None:
        assert engine.get_stats().is_running
        engine.stop()
        assert not engine.get_stats().is_running


# ---------------------------------------------------------------------------
# Gateway side effects
# ---------------------------------------------------------------------------


class TestGateway:
    def test_sync_gateway_receives_snapshots(self, config, clock, gateway, ledger) -> None:
        engine = PositionEngine(config, ledger=ledger, gateway=gateway, clock=clock)
        engine.set_session_id("session-1")
        position = engine.submit_signal(make_signal())
        engine.on_price_tick({"EURUSD": 1.0949})

        assert [p.id for p in gateway.opened] == [position.id]
        assert gateway.opened[0].is_open
        assert gateway.closed[0].exit_reason is ExitReason.HIT_SL
        assert gateway.metrics[0].total_trades == 1
        session_id, stats = gateway.sessions[0]
        assert session_id == "session-1"
        assert stats.closed_positions == 1

    def test_no_session_update_without_session_id(self, config, clock, gateway) -> None:
        engine = PositionEngine(config, gateway=gateway, clock=clock)
        position = engine.submit_signal(make_signal())
        engine.manual_close(position.id, 1.1)
        assert gateway.sessions == []

    def test_failing_gateway_never_reverts_state(self, config, clock) -> None:
        class FailingGateway(RecordingGateway):
            def on_position_open(self, position):
                raise ConnectionError("db down")

            def on_position_close(self, position):
                raise ConnectionError("db down")

        gateway = FailingGateway()
        engine = PositionEngine(config, gateway=gateway, clock=clock)
        engine.set_session_id("s")
        position = engine.submit_signal(make_signal())
        assert position is not None

        engine.manual_close(position.id, 1.1)
        assert engine.get_stats().closed_positions == 1
        # on_session_update sigue funcionando aunque on_position_close falle
        assert len(gateway.sessions) == 1

    def test_async_gateway_inside_running_loop(self, config, clock) -> None:
        calls = []

        class AsyncGateway:
            async def on_position_open(self, position):
                await asyncio.sleep(0)
                calls.append(("open", position.id))

            async def on_position_close(self, position):
                raise ConnectionError("db down")

            async def on_session_update(self, session_id, stats):
                calls.append(("session", session_id))

        async def scenario():
            engine = PositionEngine(config, gateway=AsyncGateway(), clock=clock)
            engine.set_session_id("s")
            position = engine.submit_signal(make_signal())
            engine.manual_close(position.id, 1.1)
            # fire-and-forget: todavía no se ejecutó
            assert calls == []
            await engine.wait_for_callbacks()
            return engine, position

        engine, position = asyncio.run(scenario())
        assert ("open", position.id) in calls
        assert ("session", "s") in calls
        assert engine.get_stats().closed_positions == 1

    def test_async_gateway_without_loop_runs_to_completion(self, config, clock) -> None:
        calls = []

        class AsyncGateway:
            async def on_position_open(self, position):
                calls.append(position.id)

        engine = PositionEngine(config, gateway=AsyncGateway(), clock=clock)
        position = engine.submit_signal(make_signal())
        assert calls == [position.id]


# ---------------------------------------------------------------------------
# Lifecycle & configuration
# ---------------------------------------------------------------------------


class TestLifecycle:
    def test_start_stop_idempotent(self, clock) -> None:
        engine = PositionEngine(clock=clock)
        engine.start()
        engine.start()
        assert engine.is_running
        engine.stop()
        engine.stop()
        assert not engine.is_running

    def test_reset_clears_positions_and_disables(self, engine, ledger) -> None:
        position = engine.submit_signal(make_signal())
        engine.manual_close(position.id, 1.0900)
        engine.submit_signal(make_signal("GBPUSD"))

        engine.reset()
        engine.reset()
        stats = engine.get_stats()
        assert stats.total_trades == 0
        assert stats.virtual_balance == 10_000
        assert not engine.is_running
        assert engine.trades_today() == 0

    def test_reset_keeps_ledger(self, config, clock, ledger) -> None:
        engine = PositionEngine(config, ledger=ledger, clock=clock)
        position = engine.submit_signal(make_signal())
        engine.manual_close(position.id, 1.1)
        engine.reset()
        assert ledger.get_metric("EURUSD", 75).total_trades == 1

    def test_update_config_applies_to_next_admission(self, engine) -> None:
        engine.update_config(min_confidence=90)
        assert engine.submit_signal(make_signal(confidence=85)) is None
        assert engine.get_config().min_confidence == 90

    def test_invalid_config_leaves_state_unchanged(self, engine) -> None:
        before = engine.get_config()
        with pytest.raises(ConfigurationError):
            engine.update_config(position_size=-5)
        with pytest.raises(ConfigurationError):
            engine.update_config(min_confidence=101)
        with pytest.raises(ConfigurationError) as exc_info:
            engine.update_config(leverage=10)
        assert exc_info.value.field == "leverage"
        assert engine.get_config() == before


# ---------------------------------------------------------------------------
# Subscribers
# ---------------------------------------------------------------------------


class TestSubscribers:
    def test_subscribers_get_open_positions_and_stats(self, engine) -> None:
        updates = []
        unsubscribe = engine.subscribe(lambda positions, stats: updates.append((positions, stats)))
        engine.submit_signal(make_signal())
        positions, stats = updates[-1]
        assert len(positions) == 1
        assert stats.open_positions == 1

        unsubscribe()
        count = len(updates)
        engine.on_price_tick({"EURUSD": 1.0})
        assert len(updates) == count

    def test_failing_subscriber_is_isolated(self, engine) -> None:
        def broken(_positions, _stats):
            raise RuntimeError("ui crashed")

        engine.subscribe(broken)
        assert engine.submit_signal(make_signal()) is not None
