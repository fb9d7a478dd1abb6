"""
Core module initialization.
Exports configuration, logging utilities and the error taxonomy.
"""

from snappy_serve.core.config import get_settings, Settings, EnvironmentMode
from snappy_serve.core.exceptions import (
    CafeError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceWarning,
    StartupError,
    ValidationError,
)

__all__ = [
    "get_settings",
    "Settings",
    "EnvironmentMode",
    "CafeError",
    "InvalidTransitionError",
    "NotFoundError",
    "PersistenceWarning",
    "StartupError",
    "ValidationError",
]
