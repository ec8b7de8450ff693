"""
Configuration Management System for Saheli

Handles loading configuration from environment variables, config files,
and provides validation and runtime updates.
"""

import os
import json
import yaml
import logging
from typing import Any, Dict, List, Optional, Callable
from pathlib import Path
from dataclasses import dataclass


@dataclass
class ConfigSource:
    """Configuration source definition"""
    name: str
    priority: int
    loader: Callable
    path: Optional[str] = None


class ConfigurationError(Exception):
    """Configuration-related errors"""
    pass


BACKEND_PROVIDERS = ('sqlite', 'firebase', 'supabase')
LOCATION_PROVIDERS = ('fixed', 'ip')
CALL_DECISION_MODES = ('prompt', 'accept', 'skip')


class ConfigurationManager:
    """
    Manages system configuration with support for multiple sources,
    validation, and runtime updates.
    """

    def __init__(self, config_dir: str = "config"):
        self.config_dir = Path(config_dir)
        self.config: Dict[str, Any] = {}
        self.watchers: Dict[str, List[Callable]] = {}
        self.sources: List[ConfigSource] = []
        self.logger = logging.getLogger(__name__)

        # Default configuration values
        self.defaults = {
            "app": {
                "name": "Saheli",
                "version": "1.0.0",
                "debug": False
            },
            "backend": {
                "provider": "sqlite",
                "local_user_id": None
            },
            "database": {
                "path": "data/saheli.db",
                "max_connections": 5
            },
            "firebase": {
                "credentials_file": None,
                "project_id": None,
                "id_token": None
            },
            "supabase": {
                "url": None,
                "anon_key": None,
                "access_token": None,
                "timeout": 15
            },
            "twilio": {
                "account_sid": None,
                "auth_token": None,
                "from_number": None,
                "api_base": "https://api.twilio.com/2010-04-01",
                "timeout": 15,
                "call_twiml": (
                    "<Response><Say>This is an automated SOS call from Saheli. "
                    "Please check your text messages immediately.</Say></Response>"
                )
            },
            "sos": {
                "countdown_seconds": 5,
                "call_decision_timeout": 30,
                "send_timeout": 20,
                "max_send_retries": 2,
                "retry_backoff_base": 1.0,
                "location_timeout": 30,
                "map_link_prefix": "https://www.google.com/maps?q=",
                "call_decision": "prompt"
            },
            "location": {
                "provider": "fixed",
                "latitude": None,
                "longitude": None,
                "accuracy": None,
                "ip_lookup_url": "http://ip-api.com/json/"
            },
            "tracking": {
                "interval_seconds": 30
            },
            "contacts": {
                "max_contacts": 5
            },
            "logging": {
                "level": "INFO",
                "file": "logs/saheli.log",
                "max_size": "10MB",
                "backup_count": 5
            }
        }

        self._setup_sources()

    def _setup_sources(self):
        """Set up configuration sources in priority order"""
        # Environment variables (highest priority = lowest number)
        self.sources.append(ConfigSource(
            name="environment",
            priority=4,
            loader=self._load_from_env
        ))

        # Local config file
        local_config_path = str(self.config_dir / "config.yaml")
        self.sources.append(ConfigSource(
            name="local_config",
            priority=3,
            loader=lambda: self._load_from_file(local_config_path),
            path=local_config_path
        ))

        # Default config file
        default_config_path = str(self.config_dir / "default.yaml")
        self.sources.append(ConfigSource(
            name="default_config",
            priority=2,
            loader=lambda: self._load_from_file(default_config_path),
            path=default_config_path
        ))

        # Built-in defaults (lowest priority = highest number)
        self.sources.append(ConfigSource(
            name="defaults",
            priority=1,
            loader=lambda: self.defaults
        ))

    def load_config(self) -> None:
        """Load configuration from all sources"""
        self.logger.info("Loading configuration from all sources")

        # Apply sources from lowest to highest priority
        merged_config = {}
        for source in sorted(self.sources, key=lambda x: x.priority):
            try:
                source_config = source.loader()
                if source_config:
                    merged_config = self._deep_merge(merged_config, source_config)
                    self.logger.debug(f"Loaded configuration from {source.name}")
            except (OSError, ValueError, yaml.YAMLError) as e:
                self.logger.warning(f"Failed to load config from {source.name}: {e}")

        self.config = merged_config
        self._validate_config()
        self.logger.info("Configuration loaded successfully")

    def _load_from_env(self) -> Dict[str, Any]:
        """Load configuration from environment variables"""
        config = {}

        # Map environment variables to config keys
        env_mappings = {
            "SAHELI_DEBUG": "app.debug",
            "SAHELI_LOG_LEVEL": "logging.level",
            "SAHELI_BACKEND": "backend.provider",
            "SAHELI_LOCAL_USER_ID": "backend.local_user_id",
            "SAHELI_DB_PATH": "database.path",
            "SAHELI_FIREBASE_CREDENTIALS": "firebase.credentials_file",
            "SAHELI_FIREBASE_ID_TOKEN": "firebase.id_token",
            "SAHELI_SUPABASE_URL": "supabase.url",
            "SAHELI_SUPABASE_ANON_KEY": "supabase.anon_key",
            "SAHELI_SUPABASE_ACCESS_TOKEN": "supabase.access_token",
            "SAHELI_TWILIO_ACCOUNT_SID": "twilio.account_sid",
            "SAHELI_TWILIO_AUTH_TOKEN": "twilio.auth_token",
            "SAHELI_TWILIO_FROM_NUMBER": "twilio.from_number",
            "SAHELI_COUNTDOWN_SECONDS": "sos.countdown_seconds",
            "SAHELI_CALL_DECISION": "sos.call_decision",
            "SAHELI_LOCATION_PROVIDER": "location.provider",
            "SAHELI_LATITUDE": "location.latitude",
            "SAHELI_LONGITUDE": "location.longitude"
        }

        for env_var, config_key in env_mappings.items():
            value = os.getenv(env_var)
            if value is None:
                continue

            # Convert string values to appropriate types
            if value.lower() in ('true', 'false'):
                value = value.lower() == 'true'
            elif value.isdigit():
                value = int(value)
            elif config_key in ('location.latitude', 'location.longitude'):
                try:
                    value = float(value)
                except ValueError:
                    self.logger.warning(f"Invalid coordinate in {env_var}: {value}")
                    continue

            self._set_nested_value(config, config_key, value)

        return config

    def _load_from_file(self, file_path: str) -> Dict[str, Any]:
        """Load configuration from YAML or JSON file"""
        path = Path(file_path)

        if not path.exists():
            return {}

        with open(path, 'r', encoding='utf-8') as f:
            if path.suffix.lower() in ['.yaml', '.yml']:
                return yaml.safe_load(f) or {}
            elif path.suffix.lower() == '.json':
                return json.load(f)

        self.logger.warning(f"Unsupported config file format: {path}")
        return {}

    def _deep_merge(self, base: Dict, override: Dict) -> Dict:
        """Deep merge two dictionaries"""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def _set_nested_value(self, config: Dict, key_path: str, value: Any) -> None:
        """Set a nested configuration value using dot notation"""
        keys = key_path.split('.')
        current = config

        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value

    def _validate_config(self) -> None:
        """Validate configuration values"""
        errors = []

        # Validate required sections
        required_sections = ['app', 'backend', 'sos', 'twilio']
        for section in required_sections:
            if section not in self.config:
                errors.append(f"Missing required configuration section: {section}")

        provider = self.get('backend.provider')
        if provider not in BACKEND_PROVIDERS:
            errors.append(f"Invalid backend provider: {provider}")

        location_provider = self.get('location.provider')
        if location_provider not in LOCATION_PROVIDERS:
            errors.append(f"Invalid location provider: {location_provider}")

        call_decision = self.get('sos.call_decision', 'prompt')
        if call_decision not in CALL_DECISION_MODES:
            errors.append(f"Invalid call decision mode: {call_decision}")

        # SOS timings must be positive numbers
        for key in ('countdown_seconds', 'call_decision_timeout', 'send_timeout',
                    'location_timeout', 'retry_backoff_base'):
            value = self.get(f'sos.{key}')
            if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
                errors.append(f"Invalid sos.{key}: {value}")

        retries = self.get('sos.max_send_retries')
        if not isinstance(retries, int) or isinstance(retries, bool) or retries < 0:
            errors.append(f"Invalid sos.max_send_retries: {retries}")

        max_contacts = self.get('contacts.max_contacts')
        if not isinstance(max_contacts, int) or max_contacts < 1:
            errors.append(f"Invalid contacts.max_contacts: {max_contacts}")

        # Validate the levels handed to the logging setup
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        levels = {
            'logging.level': self.get('logging.level', 'INFO'),
            'logging.console_level': self.get('logging.console_level', 'INFO')
        }
        services = self.get('logging.services') or {}
        if isinstance(services, dict):
            levels.update({f'logging.services.{name}': level for name, level in services.items()})
        else:
            errors.append(f"Invalid logging.services: {services}")
        for key, level in levels.items():
            if not isinstance(level, str) or level.upper() not in valid_levels:
                errors.append(f"Invalid log level for {key}: {level}")

        if errors:
            raise ConfigurationError(f"Configuration validation failed: {'; '.join(errors)}")

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation"""
        keys = key.split('.')
        current = self.config

        try:
            for k in keys:
                current = current[k]
            return current
        except (KeyError, TypeError):
            return default

    def set(self, key: str, value: Any) -> None:
        """Set configuration value using dot notation"""
        self._set_nested_value(self.config, key, value)

        # Notify watchers
        for callback in self.watchers.get(key, []):
            try:
                callback(key, value)
            except Exception as e:
                self.logger.error(f"Error in config watcher for {key}: {e}")

    def watch(self, key: str, callback: Callable[[str, Any], None]) -> None:
        """Watch for configuration changes"""
        self.watchers.setdefault(key, []).append(callback)

    def get_section(self, section: str) -> Dict[str, Any]:
        """Get entire configuration section"""
        return self.get(section, {})

    def get_backend_provider(self) -> str:
        """Get the configured record store backend"""
        return self.get('backend.provider', 'sqlite')

    def is_twilio_configured(self) -> bool:
        """Check whether SMS/voice credentials are present"""
        twilio = self.get_section('twilio')
        return all(twilio.get(k) for k in ('account_sid', 'auth_token', 'from_number'))

    def export_config(self, file_path: str) -> None:
        """Export current configuration to file"""
        path = Path(file_path)

        if path.suffix.lower() not in ['.yaml', '.yml', '.json']:
            raise ConfigurationError(f"Export failed: unsupported file format {path.suffix}")

        try:
            with open(path, 'w', encoding='utf-8') as f:
                if path.suffix.lower() == '.json':
                    json.dump(self.config, f, indent=2)
                else:
                    yaml.dump(self.config, f, default_flow_style=False, indent=2)

            self.logger.info(f"Configuration exported to {path}")
        except OSError as e:
            self.logger.error(f"Failed to export configuration: {e}")
            raise ConfigurationError(f"Export failed: {e}")
