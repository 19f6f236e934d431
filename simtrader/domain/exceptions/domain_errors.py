"""
SimTrader - Domain Exceptions
==============================
Excepciones específicas del dominio de simulación.

Una señal rechazada por las reglas de admisión NO es un error: es el
comportamiento normal del motor y solo se loguea. Estas excepciones
cubren errores del CALLER (datos inválidos, ids inexistentes,
configuración fuera de rango).

JERARQUÍA:
    DomainError (base)
    ├── InvalidSignalError
    ├── InvalidPositionError
    │   └── PositionNotFoundError
    ├── ConfigurationError
    └── SnapshotError
"""

from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """Excepción base para errores de dominio."""

    def __init__(self, message: str, code: str = "DOMAIN_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "error": self.code,
            "message": self.message,
        }


class InvalidSignalError(DomainError):
    """La señal no cumple los requisitos mínimos (confianza, niveles, precios)."""

    def __init__(self, message: str, reason: str | None = None):
        super().__init__(message, code="INVALID_SIGNAL")
        self.reason = reason


class InvalidPositionError(DomainError):
    """Transición ilegal o datos inválidos sobre una posición."""

    def __init__(self, message: str, position_id: str | None = None):
        super().__init__(message, code="INVALID_POSITION")
        self.position_id = position_id


class PositionNotFoundError(InvalidPositionError):
    """No existe una posición ABIERTA con ese id."""

    def __init__(self, position_id: str):
        super().__init__(f"No hay posición abierta con id={position_id}", position_id)
        self.code = "POSITION_NOT_FOUND"


class ConfigurationError(DomainError):
    """Valor de configuración rechazado en la frontera. El estado no cambia."""

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        super().__init__(message, code="CONFIGURATION_ERROR")
        self.field = field
        self.value = value

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["field"] = self.field
        return data


class SnapshotError(DomainError):
    """El snapshot local no se pudo leer o escribir."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message, code="SNAPSHOT_ERROR")
        self.path = path
