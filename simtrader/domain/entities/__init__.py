"""Domain entities."""
from simtrader.domain.entities.signal import Direction, Signal
from simtrader.domain.entities.position import ExitReason, Position, PositionStatus

__all__ = ["Direction", "Signal", "ExitReason", "Position", "PositionStatus"]
