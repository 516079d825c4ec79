"""
Core module initialization
"""

from .config import Config, DEFAULT_BASE_URL, DEFAULT_API_IDENTIFIER

__all__ = ["Config", "DEFAULT_BASE_URL", "DEFAULT_API_IDENTIFIER"]
