"""Domain exceptions."""
from simtrader.domain.exceptions.domain_errors import (
    DomainError,
    InvalidSignalError,
    InvalidPositionError,
    PositionNotFoundError,
    ConfigurationError,
    SnapshotError,
)

__all__ = [
    "DomainError",
    "InvalidSignalError",
    "InvalidPositionError",
    "PositionNotFoundError",
    "ConfigurationError",
    "SnapshotError",
]
