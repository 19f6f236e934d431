"""
SimTrader - Simulation Runner (CLI)
====================================
Corre una sesión de paper trading: arranca el Price Feed, alimenta el
Position Engine con señales desde un archivo JSON y al terminar imprime
las estadísticas.

USO:
    # Sesión de 60s con las señales de un archivo
    python -m simtrader.main --signals signals.json --duration 60

    # Ticks rápidos y deterministas
    python -m simtrader.main --signals signals.json --interval 0.1 --seed 42

    # Estadísticas en JSON por stdout
    python -m simtrader.main --signals signals.json --json

ARRANQUE:
    1. Configurar logging
    2. Container (feed + ledger + engine + gateway opcional)
    3. Restaurar snapshot local (config + métricas del ledger)
    4. Gateway SQL: crear tablas, cargar métricas guardadas y sesión de trading (si db_enabled)
    5. engine.start() + feed.start(), submit de señales
    6. Tras `duration` segundos: detener en orden inverso y persistir
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

from simtrader.application.dto.signal_dto import SignalDTO
from simtrader.container import Container, init_container
from simtrader.domain.entities.signal import Signal
from simtrader.domain.exceptions.domain_errors import DomainError, InvalidSignalError
from simtrader.domain.value_objects.engine_stats import EngineStats
from simtrader.shared.config.settings import Settings
from simtrader.shared.logging.logger import get_logger, setup_logging

logger = get_logger("main")


def load_signals(path: Path) -> List[Signal]:
    """
    Lee una lista JSON de señales. Las inválidas se loguean y se saltan.

    Raises:
        InvalidSignalError: si el archivo no contiene una lista.
    """
    raw = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw, list):
        raise InvalidSignalError(f"{path} debe contener una lista de señales")

    signals = []
    for index, item in enumerate(raw):
        try:
            signals.append(SignalDTO.parse(item))
        except InvalidSignalError as exc:
            logger.warning("⚠️ Señal #%d ignorada: %s", index, exc.message)
    logger.info("📥 %d/%d señales cargadas desde %s", len(signals), len(raw), path)
    return signals


async def run_simulation(
    container: Container,
    signals: List[Signal],
    duration: float,
) -> EngineStats:
    """Sesión completa: restore → start → señales → espera → stop → persist."""
    engine = container.engine
    feed = container.price_feed
    keeper = container.snapshot_keeper

    keeper.restore()
    keeper.attach()

    gateway = container.gateway
    sql_gateway = None
    if gateway is not None:
        from simtrader.infrastructure.persistence.sql_gateway import SqlPersistenceGateway
        if isinstance(gateway, SqlPersistenceGateway):
            sql_gateway = gateway
            await sql_gateway.initialize()
            stored = await sql_gateway.load_metrics()
            if stored:
                # la BD guarda el historial completo: prevalece sobre el snapshot
                container.ledger.load_metrics(stored)
            session_id = await sql_gateway.create_session(
                engine.get_config().starting_balance, engine.get_config(),
            )
            engine.set_session_id(session_id)

    logger.info("=" * 60)
    logger.info("  SimTrader - Paper Trading")
    logger.info("  Símbolos: %s", ", ".join(sorted(feed.get_prices())))
    logger.info("  Duración: %.1fs  Intervalo: %.3fs", duration, feed.update_interval)
    cfg = engine.get_config()
    logger.info(
        "  Config: min_conf=%.0f max_pos=%d size=%.0f daily=%d time_limit=%.0fmin",
        cfg.min_confidence, cfg.max_positions, cfg.position_size,
        cfg.max_daily_trades, cfg.time_limit,
    )
    logger.info("=" * 60)

    engine.start()
    feed.start()
    try:
        opened = engine.process_signals(signals)
        logger.info("📈 %d/%d señales admitidas", len(opened), len(signals))
        await asyncio.sleep(duration)
    finally:
        feed.stop()
        engine.stop()
        await engine.wait_for_callbacks()
        keeper.detach()
        keeper.persist()
        if sql_gateway is not None:
            await sql_gateway.close()

    return engine.get_stats()


def log_summary(stats: EngineStats) -> None:
    logger.info("")
    logger.info("=" * 60)
    logger.info("  RESUMEN")
    logger.info("=" * 60)
    logger.info("  Trades:         %d (%d abiertas)", stats.total_trades, stats.open_positions)
    logger.info("  Ganadores:      %d", stats.winning_trades)
    logger.info("  Perdedores:     %d", stats.losing_trades)
    logger.info("  Win Rate:       %.2f%%", stats.win_rate)
    logger.info("  P/L neto:       %+.4f", stats.net_pl)
    logger.info("  Balance:        %.2f → %.2f", stats.starting_balance, stats.virtual_balance)
    for reason, count in sorted(stats.exits_by_reason.items()):
        logger.info("  Cierres %-11s %d", reason + ":", count)
    logger.info("=" * 60)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="SimTrader - paper trading simulado")

    parser.add_argument(
        "--signals", type=Path,
        help="Archivo JSON con una lista de señales",
    )
    parser.add_argument(
        "--duration", type=float, default=30.0,
        help="Segundos de simulación (default: 30)",
    )
    parser.add_argument(
        "--interval", type=float,
        help="Intervalo entre ticks en segundos (override de settings)",
    )
    parser.add_argument(
        "--seed", type=int,
        help="Semilla del random walk",
    )
    parser.add_argument(
        "--snapshot", type=Path,
        help="Ruta del snapshot local (override de settings)",
    )
    parser.add_argument(
        "--log-level", default=None,
        help="Nivel de logging (default: settings.log_level)",
    )
    parser.add_argument(
        "--json", action="store_true",
        help="Imprimir las estadísticas finales como JSON",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    overrides = {}
    if args.interval is not None:
        overrides["feed_update_interval"] = args.interval
    if args.seed is not None:
        overrides["feed_seed"] = args.seed
    if args.snapshot is not None:
        overrides["snapshot_path"] = str(args.snapshot)
    settings = Settings(**overrides)

    setup_logging(args.log_level or settings.log_level)

    try:
        signals = load_signals(args.signals) if args.signals else []
        container = init_container(settings)
        stats = asyncio.run(run_simulation(container, signals, args.duration))
    except (DomainError, OSError, ValueError) as exc:
        logger.error("❌ Simulación abortada: %s", exc)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrumpido por el usuario")
        return 130

    log_summary(stats)
    if args.json:
        print(json.dumps(stats.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
