"""
SimTrader - Performance Ledger (aprendizaje online)
====================================================
Acumula el resultado de cada posición cerrada por (símbolo, bucket de
confianza) y deriva un multiplicador acotado que re-pondera la confianza
de señales futuras.

═══════════════════════════════════════════════════════════════
            FLUJO
═══════════════════════════════════════════════════════════════

    Posición cerrada
        │
        ▼
    record_outcome(symbol, confidence, pl)
        │
        ├── bucket = "70-79" (ancho configurable)
        ├── contadores + medias acumuladas (wins y losses por separado)
        ├── win_rate / profit_factor
        └── si total >= MIN_SAMPLE → recalcular multiplicador

    Nueva señal
        │
        ▼
    adjust_confidence(symbol, base)
        │
        ├── bucket sin evidencia suficiente → base (cold start)
        └── clamp(base × multiplier, 0, 100)

═══════════════════════════════════════════════════════════════
            MULTIPLICADOR (determinista y explicable)
═══════════════════════════════════════════════════════════════

  score  = 0.4 × (win_rate − 50) / 50          # baseline WR 50%
         + 0.4 × (profit_factor − 1) / 2        # baseline PF 1.0
         + 0.2 × ((avg_profit / |avg_loss|) − 1) / 2
  score *= min(total_trades / 20, 1)            # confianza en la muestra
  mult   = clamp(1 + 0.3 × score, 0.7, 1.3)

  Baseline exacto (WR 50%, PF 1.0, ratio 1) → mult = 1.0 (neutral).

NO ES UN MODELO ESTADÍSTICO:
  Es una heurística para premiar/castigar combinaciones con historial.
  No hay test de significancia: con N chico las métricas tienen mucha
  varianza, por eso el MIN_SAMPLE y el factor de confianza de muestra.

MEDIA ACUMULADA:
  new_avg = old_avg + (value − old_avg) / new_count
  Se lleva por separado para ganadores (avg_profit) y perdedores
  (avg_loss, negativa), así una pérdida nunca contamina avg_profit.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from simtrader.domain.value_objects.strategy_metric import (
    PerformanceMultiplier,
    StrategyMetric,
)
from simtrader.shared.logging.logger import get_logger

logger = get_logger("performance_ledger")

# ── Políticas por defecto (ajustables vía constructor / settings) ──────
DEFAULT_BUCKET_WIDTH = 10
DEFAULT_MIN_SAMPLE_SIZE = 5
DEFAULT_MIN_MULTIPLIER = 0.7
DEFAULT_MAX_MULTIPLIER = 1.3
FULL_TRUST_SAMPLE = 20
PROFIT_FACTOR_SENTINEL = 999.0
NEUTRAL_MULTIPLIER = 1.0


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class PerformanceLedger:
    """
    Métricas históricas por (símbolo, bucket) y multiplicadores derivados.

    Invariantes:
      - adjust_confidence() siempre devuelve un valor en [0, 100].
      - Sin MIN_SAMPLE trades en el bucket → no hay ajuste.
      - `version` se incrementa en cada mutación (record/load/reset).
    """

    def __init__(
        self,
        initial_metrics: Iterable[StrategyMetric] | None = None,
        *,
        bucket_width: int = DEFAULT_BUCKET_WIDTH,
        min_sample_size: int = DEFAULT_MIN_SAMPLE_SIZE,
        min_multiplier: float = DEFAULT_MIN_MULTIPLIER,
        max_multiplier: float = DEFAULT_MAX_MULTIPLIER,
    ) -> None:
        if not 0 < bucket_width <= 100:
            raise ValueError(f"bucket_width fuera de rango: {bucket_width}")
        if min_multiplier > NEUTRAL_MULTIPLIER or max_multiplier < NEUTRAL_MULTIPLIER:
            raise ValueError("Los límites del multiplicador deben contener 1.0")

        self.bucket_width = bucket_width
        self.min_sample_size = min_sample_size
        self.min_multiplier = min_multiplier
        self.max_multiplier = max_multiplier

        # key "SYMBOL:70-79" → métrica / multiplicador
        self._metrics: dict[str, StrategyMetric] = {}
        self._multipliers: dict[str, float] = {}
        self._version = 0

        if initial_metrics is not None:
            self.load_metrics(initial_metrics)

    # ════════════════════════════════════════════════════════════════
    #  BUCKETS
    # ════════════════════════════════════════════════════════════════

    def confidence_range(self, confidence: float) -> str:
        """
        Bucket de confianza. Con ancho 10: "0-9", ..., "80-89", "90-100".
        El último bucket es cerrado por arriba para incluir 100.
        """
        width = self.bucket_width
        last_start = (99 // width) * width
        start = min(int(_clamp(confidence, 0.0, 100.0) // width) * width, last_start)
        end = 100 if start == last_start else start + width - 1
        return f"{start}-{end}"

    @staticmethod
    def _key(symbol: str, confidence_range: str) -> str:
        return f"{symbol}:{confidence_range}"

    # ════════════════════════════════════════════════════════════════
    #  APRENDIZAJE
    # ════════════════════════════════════════════════════════════════

    def record_outcome(
        self,
        symbol: str,
        confidence_at_entry: float,
        profit_loss: float,
    ) -> StrategyMetric:
        """
        Registra el resultado de una posición cerrada.

        P/L > 0 cuenta como ganador; P/L <= 0 como perdedor.

        Returns:
            Copia de la métrica actualizada del bucket.
        """
        bucket = self.confidence_range(confidence_at_entry)
        key = self._key(symbol, bucket)

        metric = self._metrics.get(key)
        if metric is None:
            metric = StrategyMetric(symbol=symbol, confidence_range=bucket)
            self._metrics[key] = metric

        metric.total_trades += 1
        if profit_loss > 0:
            metric.winning_trades += 1
            metric.avg_profit += (profit_loss - metric.avg_profit) / metric.winning_trades
        else:
            metric.losing_trades += 1
            metric.avg_loss += (profit_loss - metric.avg_loss) / metric.losing_trades

        metric.win_rate = (metric.winning_trades / metric.total_trades) * 100.0
        metric.profit_factor = self.profit_factor(metric)
        metric.last_updated = datetime.now(timezone.utc)

        if metric.total_trades >= self.min_sample_size:
            multiplier = self.calculate_multiplier(metric)
            self._multipliers[key] = multiplier
            logger.info(
                "🧠 Learning: %s %s → x%.3f (%d trades, WR=%.1f%%, PF=%.2f)",
                symbol, bucket, multiplier, metric.total_trades,
                metric.win_rate, metric.profit_factor,
            )
        else:
            logger.debug(
                "Learning: %s %s acumulando muestra (%d/%d)",
                symbol, bucket, metric.total_trades, self.min_sample_size,
            )

        self._version += 1
        return metric.copy()

    @staticmethod
    def profit_factor(metric: StrategyMetric) -> float:
        """
        PF = gross_profit / gross_loss.

        Sin pérdidas y con ganadores → sentinel (evita inf, que rompe JSON).
        Sin trades → 0.
        """
        if metric.total_trades == 0:
            return 0.0
        gross_loss = metric.gross_loss
        if gross_loss > 0:
            return metric.gross_profit / gross_loss
        if metric.winning_trades > 0:
            return PROFIT_FACTOR_SENTINEL
        return 0.0

    def calculate_multiplier(self, metric: StrategyMetric) -> float:
        """Multiplicador acotado en [min_multiplier, max_multiplier]."""
        if metric.total_trades < self.min_sample_size:
            return NEUTRAL_MULTIPLIER

        score = 0.0

        # (1) Win rate vs baseline 50%
        score += ((metric.win_rate - 50.0) / 50.0) * 0.4

        # (2) Profit factor vs baseline 1.0
        profit_factor = min(metric.profit_factor, PROFIT_FACTOR_SENTINEL)
        score += ((profit_factor - 1.0) / 2.0) * 0.4

        # (3) Ratio ganancia media / pérdida media
        if metric.avg_loss != 0:
            pl_ratio = (metric.avg_profit / abs(metric.avg_loss)) - 1.0
            score += (pl_ratio / 2.0) * 0.2

        # (4) Confianza en la muestra
        score *= min(metric.total_trades / FULL_TRUST_SAMPLE, 1.0)

        return _clamp(1.0 + score * 0.3, self.min_multiplier, self.max_multiplier)

    # ════════════════════════════════════════════════════════════════
    #  AJUSTE DE CONFIANZA
    # ════════════════════════════════════════════════════════════════

    def get_multiplier(self, symbol: str, confidence: float) -> float:
        """Multiplicador vigente del bucket (1.0 si no hay evidencia)."""
        key = self._key(symbol, self.confidence_range(confidence))
        metric = self._metrics.get(key)
        if metric is None or metric.total_trades < self.min_sample_size:
            return NEUTRAL_MULTIPLIER
        return self._multipliers.get(key, NEUTRAL_MULTIPLIER)

    def adjust_confidence(self, symbol: str, base_confidence: float) -> float:
        """Confianza ajustada por el historial, siempre en [0, 100]."""
        base = _clamp(base_confidence, 0.0, 100.0)
        multiplier = self.get_multiplier(symbol, base)
        if multiplier == NEUTRAL_MULTIPLIER:
            return base

        adjusted = _clamp(base * multiplier, 0.0, 100.0)
        if abs(adjusted - base) > 1.0:
            logger.debug(
                "🎯 Confianza ajustada %s: %.1f → %.1f (x%.3f)",
                symbol, base, adjusted, multiplier,
            )
        return adjusted

    # ════════════════════════════════════════════════════════════════
    #  CONSULTAS
    # ════════════════════════════════════════════════════════════════

    def get_metric(self, symbol: str, confidence: float) -> StrategyMetric | None:
        metric = self._metrics.get(self._key(symbol, self.confidence_range(confidence)))
        return metric.copy() if metric is not None else None

    def get_multipliers(self) -> list[PerformanceMultiplier]:
        """Todos los multiplicadores calculados, mayor muestra primero."""
        result = []
        for key, multiplier in self._multipliers.items():
            metric = self._metrics.get(key)
            if metric is None:
                continue
            result.append(PerformanceMultiplier(
                symbol=metric.symbol,
                confidence_range=metric.confidence_range,
                multiplier=multiplier,
                sample_size=metric.total_trades,
            ))
        return sorted(result, key=lambda m: m.sample_size, reverse=True)

    def _qualified(self) -> list[StrategyMetric]:
        return [m for m in self._metrics.values() if m.total_trades >= self.min_sample_size]

    def get_top_performers(self, limit: int = 5) -> list[StrategyMetric]:
        """Mejores buckets por profit factor, desempate por win rate."""
        ranked = sorted(
            self._qualified(),
            key=lambda m: (m.profit_factor, m.win_rate),
            reverse=True,
        )
        return [m.copy() for m in ranked[:max(limit, 0)]]

    def get_worst_performers(self, limit: int = 5) -> list[StrategyMetric]:
        """Peores buckets por profit factor, desempate por win rate."""
        ranked = sorted(self._qualified(), key=lambda m: (m.profit_factor, m.win_rate))
        return [m.copy() for m in ranked[:max(limit, 0)]]

    def get_symbol_performance(self, symbol: str) -> list[StrategyMetric]:
        """Todos los buckets de un símbolo, más operados primero."""
        metrics = [m.copy() for m in self._metrics.values() if m.symbol == symbol]
        return sorted(metrics, key=lambda m: m.total_trades, reverse=True)

    def get_overall_stats(self) -> dict:
        metrics = list(self._metrics.values())
        qualified = self._qualified()
        count = len(qualified)
        return {
            "total_metrics": len(metrics),
            "active_multipliers": sum(
                1 for m in self._multipliers.values() if m != NEUTRAL_MULTIPLIER
            ),
            "avg_win_rate": sum(m.win_rate for m in qualified) / count if count else 0.0,
            "avg_profit_factor": (
                sum(m.profit_factor for m in qualified) / count if count else 0.0
            ),
            "total_trades": sum(m.total_trades for m in metrics),
        }

    @property
    def version(self) -> int:
        return self._version

    # ════════════════════════════════════════════════════════════════
    #  CARGA / EXPORTACIÓN
    # ════════════════════════════════════════════════════════════════

    def load_metrics(self, metrics: Iterable[StrategyMetric]) -> None:
        """
        Reemplazo completo del estado (sin merge). El caller resuelve
        conflictos; si dos registros comparten bucket gana el último.
        """
        self._metrics.clear()
        self._multipliers.clear()

        for metric in metrics:
            loaded = metric.copy()
            self._metrics[loaded.key] = loaded
            if loaded.total_trades >= self.min_sample_size:
                self._multipliers[loaded.key] = self.calculate_multiplier(loaded)

        self._version += 1
        logger.info(
            "📊 Ledger cargado: %d métricas, %d multiplicadores",
            len(self._metrics), len(self._multipliers),
        )

    def export_metrics(self) -> list[StrategyMetric]:
        return [m.copy() for m in self._metrics.values()]

    def reset(self) -> None:
        self._metrics.clear()
        self._multipliers.clear()
        self._version += 1
        logger.info("🔄 Performance Ledger reseteado")
