"""
Logging, configuration and path helpers shared by the wetland composites components.

Author: Diego Bengochea
"""

from .logging_utils import setup_logging, get_logger, log_pipeline_start, log_pipeline_end, log_section
from .config_utils import load_config, validate_config, get_config_value, save_config
from .path_utils import ensure_directory, resolve_path, find_files, validate_directory_exists

__version__ = "1.0.0"

__all__ = [
    # logging
    "setup_logging", "get_logger",
    "log_pipeline_start", "log_pipeline_end", "log_section",
    # configuration
    "load_config", "validate_config", "get_config_value", "save_config",
    # paths
    "ensure_directory", "resolve_path", "find_files", "validate_directory_exists",
]
