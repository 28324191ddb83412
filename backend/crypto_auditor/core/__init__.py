"""
Core application modules.
Contains configuration, structured logging, metrics, tracing and middleware.
"""
from .config import Settings, get_settings

__all__ = ["Settings", "get_settings"]
