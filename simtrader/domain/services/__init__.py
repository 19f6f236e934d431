"""Domain services - lógica pura sin dependencias externas."""
from simtrader.domain.services.performance_ledger import PerformanceLedger
from simtrader.domain.services.stats_calculator import compute_engine_stats, utc_day

__all__ = ["PerformanceLedger", "compute_engine_stats", "utc_day"]
