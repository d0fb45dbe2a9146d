"""Configuration module for Smart Paths."""

from .settings import (
    Config,
    ResolverConfig,
    WatcherConfig,
    CacheConfig,
    DetectionConfig,
    LearningConfig,
)
from .environment import PlatformEnvironment

__all__ = [
    "Config",
    "ResolverConfig",
    "WatcherConfig",
    "CacheConfig",
    "DetectionConfig",
    "LearningConfig",
    "PlatformEnvironment",
]
