"""Runtime services shared across the editing core."""

from . import telemetry

__all__ = ["telemetry"]
