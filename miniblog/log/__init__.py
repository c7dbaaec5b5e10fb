"""
Logging package for the application.
This module provides the root logging setup and the optional Loki shipping handler.
"""

from .setup import setup_logging
from .handler import LokiHandler

__all__ = ["setup_logging", "LokiHandler"]
