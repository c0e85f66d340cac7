"""
Configuration module for RVDB.
"""

from .settings import (
    RedisConfig,
    ExportConfig,
    SearchConfig,
)

__all__ = [
    "RedisConfig",
    "ExportConfig",
    "SearchConfig",
]
