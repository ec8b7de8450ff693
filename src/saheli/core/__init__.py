"""
Core module for Saheli

Contains configuration management, logging and the local database layer.
"""

from .config import ConfigurationManager, ConfigurationError
from .logging import initialize_logging, get_logger, get_structured_logger

__all__ = [
    'ConfigurationManager',
    'ConfigurationError',
    'initialize_logging',
    'get_logger',
    'get_structured_logger'
]
