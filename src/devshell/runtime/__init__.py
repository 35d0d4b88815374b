"""Runtime module - unit registry and front-end primitives"""

from .registry import (
    Unit,
    UnitRegistry,
    get_registry,
)
from .frontend import start_frontend

__all__ = [
    "Unit",
    "UnitRegistry",
    "get_registry",
    "start_frontend",
]
