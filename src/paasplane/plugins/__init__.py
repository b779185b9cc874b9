"""Plugin system for the paasplane operator."""

from .base import PluginBase
from .registry import PluginRegistry

__all__ = ["PluginBase", "PluginRegistry"]
