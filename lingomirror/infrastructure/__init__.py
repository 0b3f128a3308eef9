"""LingoMirror Infrastructure Layer.

This layer provides services used by every other package:
- ConfigManager: Hierarchical application configuration with reload callbacks
- Logger: Structured logging system
- log_entities: ``Name (id)`` formatting of domain objects in log lines
"""

from .config_manager import ConfigError
from .config_manager import ConfigManager as Config
from .config_manager import ConfigSource, ConfigValue
from .log_entities import log_alternative, log_library, log_mirror, log_user
from .logger import Logger, LogLevel, configure_logging, get_logger, set_global_logger

__all__ = [
    # Logger exports
    "Logger",
    "LogLevel",
    "configure_logging",
    "get_logger",
    "set_global_logger",
    "log_alternative",
    "log_library",
    "log_mirror",
    "log_user",
    # ConfigManager exports
    "ConfigSource",
    "ConfigValue",
    "ConfigError",
    "Config",
]
