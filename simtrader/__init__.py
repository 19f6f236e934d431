"""SimTrader - motor de trading simulado con aprendizaje online de confianza."""

__version__ = "0.1.0"
