"""
Logging Configuration for Saheli

Provides centralized logging setup with structured logging,
file rotation, and service-specific log levels.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Dict, Optional
import structlog


class SaheliLogger:
    """
    Centralized logging configuration for Saheli
    """

    def __init__(self, config: Dict):
        self.config = config
        self.loggers: Dict[str, logging.Logger] = {}
        self._setup_logging()

    def _setup_logging(self):
        """Set up logging configuration"""
        log_config = self.config.get('logging', {})
        log_level = log_config.get('level', 'INFO').upper()
        log_file = log_config.get('file', 'logs/saheli.log')
        max_size = log_config.get('max_size', '10MB')
        backup_count = log_config.get('backup_count', 5)
        console_enabled = log_config.get('console', True)
        console_level = log_config.get('console_level', 'INFO').upper()

        # Configure structlog
        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.stdlib.PositionalArgumentsFormatter(),
                structlog.processors.TimeStamper(fmt="ISO"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.UnicodeDecoder(),
                structlog.processors.JSONRenderer()
            ],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

        root_logger = logging.getLogger()
        root_logger.setLevel(getattr(logging, log_level))
        root_logger.handlers.clear()

        # File handler with rotation
        if log_file:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=self._parse_size(max_size),
                backupCount=backup_count,
                encoding='utf-8'
            )
            file_handler.setFormatter(logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            ))
            file_handler.setLevel(getattr(logging, log_level))
            root_logger.addHandler(file_handler)

        # Console handler
        if console_enabled:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setFormatter(logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                datefmt='%H:%M:%S'
            ))
            console_handler.setLevel(getattr(logging, console_level))
            root_logger.addHandler(console_handler)

        # Configure service-specific log levels
        for service, level in log_config.get('services', {}).items():
            logging.getLogger(f'saheli.{service}').setLevel(getattr(logging, level.upper()))

        self._configure_third_party_loggers()

    def _parse_size(self, size_str) -> int:
        """Parse size string like '10MB' to bytes"""
        size_str = str(size_str).upper()
        if size_str.endswith('KB'):
            return int(size_str[:-2]) * 1024
        elif size_str.endswith('MB'):
            return int(size_str[:-2]) * 1024 * 1024
        elif size_str.endswith('GB'):
            return int(size_str[:-2]) * 1024 * 1024 * 1024
        else:
            return int(size_str)

    def _configure_third_party_loggers(self):
        """Configure third-party library loggers to reduce noise"""
        noisy_loggers = [
            'urllib3.connectionpool',
            'asyncio',
            'aiohttp.access',
            'aiohttp.client',
            'google',
            'google.auth.transport.requests',
        ]

        for logger_name in noisy_loggers:
            logging.getLogger(logger_name).setLevel(logging.WARNING)

    def get_logger(self, name: str) -> logging.Logger:
        """Get a logger for a specific component"""
        if name not in self.loggers:
            full_name = name if name.startswith('saheli') else f'saheli.{name}'
            self.loggers[name] = logging.getLogger(full_name)

        return self.loggers[name]


# Global logger instance
_logger_instance: Optional[SaheliLogger] = None


def initialize_logging(config: Dict) -> SaheliLogger:
    """Initialize the global logging system"""
    global _logger_instance
    _logger_instance = SaheliLogger(config)
    return _logger_instance


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance"""
    if _logger_instance is None:
        return logging.getLogger(name if name.startswith('saheli') else f'saheli.{name}')

    return _logger_instance.get_logger(name)


def get_structured_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance"""
    return structlog.get_logger(f'saheli.{name}')


def mask_phone(phone: Optional[str]) -> str:
    """Mask a phone number for logs, keeping the last four digits"""
    if not phone:
        return "<none>"
    digits = phone.strip()
    if len(digits) <= 4:
        return "***"
    return "*" * (len(digits) - 4) + digits[-4:]


class LogContext:
    """Context manager for adding structured logging context"""

    def __init__(self, logger: structlog.stdlib.BoundLogger, **context):
        self.logger = logger
        self.context = context
        self.bound_logger = None

    def __enter__(self):
        self.bound_logger = self.logger.bind(**self.context)
        return self.bound_logger

    def __exit__(self, exc_type, exc_val, exc_tb):
        pass
