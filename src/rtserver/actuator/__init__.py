"""Relay actuation backends.

Public API:
    Actuator -- Abstract base class
    ActuationResult -- Outcome of one actuation
    NullActuator -- No local hardware; devices confirm state
    GpioActuator -- Linux sysfs GPIO lines for one local slot
"""

from rtserver.actuator.base import ActuationResult, Actuator, NullActuator

__all__ = ["ActuationResult", "Actuator", "NullActuator", "GpioActuator"]


def __getattr__(name: str) -> type:
    """Lazy import for the hardware backend."""
    if name == "GpioActuator":
        from rtserver.actuator.gpio import GpioActuator
        return GpioActuator
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
