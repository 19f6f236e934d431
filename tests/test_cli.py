"""Tests for the simulation runner: signal loading and a short end-to-end session."""

import asyncio
import json
from pathlib import Path

import pytest

from simtrader.container import Container, reset_container
from simtrader.domain.exceptions.domain_errors import InvalidSignalError
from simtrader.domain.services.performance_ledger import PerformanceLedger
from simtrader.infrastructure.persistence.database import DatabaseManager
from simtrader.infrastructure.persistence.sql_gateway import SqlPersistenceGateway
from simtrader.main import build_parser, load_signals, main, run_simulation
from simtrader.shared.config.settings import Settings

VALID = {
    "symbol": "EURUSD", "direction": "LONG", "confidence": 80,
    "entry": 1.1, "stop_loss": 1.095, "take_profits": [1.11],
}


@pytest.fixture(autouse=True)
def _reset_global_container():
    yield
    reset_container()


def _signals_file(tmp_path: Path, payload) -> Path:
    path = tmp_path / "signals.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


class TestLoadSignals:
    def test_invalid_entries_skipped(self, tmp_path: Path) -> None:
        path = _signals_file(tmp_path, [VALID, {"symbol": "EURUSD"}, {**VALID, "confidence": 300}])
        signals = load_signals(path)
        assert len(signals) == 1
        assert signals[0].symbol == "EURUSD"

    def test_not_a_list(self, tmp_path: Path) -> None:
        with pytest.raises(InvalidSignalError):
            load_signals(_signals_file(tmp_path, VALID))


class TestRunSimulation:
    def test_session_opens_positions_and_persists(self, tmp_path: Path) -> None:
        snapshot = tmp_path / "snapshot.json"
        container = Container(settings=Settings(
            feed_seed=3,
            feed_update_interval=0.01,
            snapshot_path=str(snapshot),
        ))
        signals = load_signals(_signals_file(tmp_path, [
            VALID,
            {**VALID, "symbol": "GBPUSD", "entry": 1.27, "stop_loss": 1.26, "take_profits": [1.28]},
            {**VALID, "symbol": "USDJPY", "confidence": 50,
             "entry": 149.5, "stop_loss": 149.0, "take_profits": [150.5]},
        ]))

        stats = asyncio.run(run_simulation(container, signals, duration=0.05))

        assert stats.total_trades == 2
        assert not stats.is_running
        assert not container.price_feed.is_running
        saved = json.loads(snapshot.read_text(encoding="utf-8"))
        assert saved["schema_version"] == 1
        assert saved["config"]["enabled"] is False
        container.reset()

    def test_ledger_seeded_from_database(self, tmp_path: Path) -> None:
        db_url = f"sqlite+aiosqlite:///{tmp_path / 'simtrader.db'}"
        settings = Settings(
            db_enabled=True,
            db_url=db_url,
            feed_update_interval=0.01,
            snapshot_path=str(tmp_path / "snapshot.json"),
        )

        async def seed():
            gateway = SqlPersistenceGateway(DatabaseManager(settings))
            await gateway.initialize()
            try:
                ledger = PerformanceLedger()
                for _ in range(8):
                    metric = ledger.record_outcome("EURUSD", 72, 10.0)
                for _ in range(2):
                    metric = ledger.record_outcome("EURUSD", 72, -5.0)
                await gateway.on_metric_update(metric)
            finally:
                await gateway.close()

        asyncio.run(seed())
        container = Container(settings=settings)
        asyncio.run(run_simulation(container, [], duration=0))

        stored = container.ledger.get_metric("EURUSD", 72)
        assert stored.total_trades == 10
        assert container.ledger.adjust_confidence("EURUSD", 72) > 72
        saved = json.loads((tmp_path / "snapshot.json").read_text(encoding="utf-8"))
        assert [m["symbol"] for m in saved["metrics"]] == ["EURUSD"]
        container.reset()


class TestMain:
    def test_parser_defaults(self) -> None:
        args = build_parser().parse_args([])
        assert args.duration == 30.0
        assert args.signals is None
        assert not args.json

    def test_short_run(self, tmp_path: Path) -> None:
        snapshot = tmp_path / "snap.json"
        code = main([
            "--signals", str(_signals_file(tmp_path, [VALID])),
            "--duration", "0",
            "--interval", "0.01",
            "--seed", "1",
            "--snapshot", str(snapshot),
            "--log-level", "WARNING",
        ])
        assert code == 0
        assert snapshot.exists()

    def test_missing_signals_file(self, tmp_path: Path) -> None:
        code = main([
            "--signals", str(tmp_path / "missing.json"),
            "--duration", "0",
            "--snapshot", str(tmp_path / "snap.json"),
        ])
        assert code == 1
