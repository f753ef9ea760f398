"""Dependency freshness checks."""

from .cache import CacheStats, CheckCache
from .checker import Checker
from .model import CacheKey, CheckError, CheckResult, Target
from .strategies import (
    CheckStrategy,
    FallbackStrategy,
    LocalStrategy,
    RemoteStrategy,
    select_strategy,
)

__all__ = [
    "CacheKey",
    "CacheStats",
    "CheckCache",
    "CheckError",
    "CheckResult",
    "CheckStrategy",
    "Checker",
    "FallbackStrategy",
    "LocalStrategy",
    "RemoteStrategy",
    "Target",
    "select_strategy",
]
