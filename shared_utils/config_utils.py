"""
Configuration utilities for the multitemporal wetland composites pipeline.

Components keep their defaults in ``<component>/config.yml``; runs can point
to another file explicitly or through the WETLAND_COMPOSITES_CONFIG
environment variable.

Author: Diego Bengochea
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import yaml

CONFIG_ENV_VAR = 'WETLAND_COMPOSITES_CONFIG'

REPO_ROOT = Path(__file__).resolve().parent.parent


def config_search_paths(
    config_path: Optional[Union[str, Path]] = None,
    component_name: Optional[str] = None,
    default_config_name: str = "config.yml"
) -> List[Path]:
    """
    Candidate configuration files in lookup order.

    Order: explicit path, component package directory, component directory
    relative to cwd, cwd, then the WETLAND_COMPOSITES_CONFIG variable.
    """
    candidates = []
    if config_path:
        candidates.append(Path(config_path))
    if component_name:
        candidates.append(REPO_ROOT / component_name / default_config_name)
        candidates.append(Path(component_name) / default_config_name)
    candidates.append(Path(default_config_name))

    env_config = os.environ.get(CONFIG_ENV_VAR)
    if env_config:
        candidates.append(Path(env_config))
    return candidates


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    component_name: Optional[str] = None,
    default_config_name: str = "config.yml"
) -> Dict[str, Any]:
    """
    Load the first YAML configuration found on the search path.

    Args:
        config_path: Explicit path to a configuration file
        component_name: Component package whose config.yml is the default
        default_config_name: File name looked up in the component and cwd

    Returns:
        Dict[str, Any]: Configuration with an added '_meta' section naming
        the file it came from

    Raises:
        FileNotFoundError: If no candidate file exists
        yaml.YAMLError: If the file is not valid YAML
        ValueError: If the file does not hold a mapping

    Examples:
        >>> config = load_config(component_name="multitemporal_composites")
        >>> config = load_config("runs/wadden_2019.yml")
    """
    logger = logging.getLogger(__name__)

    candidates = config_search_paths(config_path, component_name, default_config_name)
    config_file = next((path for path in candidates if path.is_file()), None)
    if config_file is None:
        raise FileNotFoundError(
            f"Configuration file not found. Searched paths: {[str(p) for p in candidates]}"
        )

    with open(config_file, 'r', encoding='utf-8') as f:
        try:
            config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in {config_file}: {e}") from e

    if not isinstance(config, dict):
        raise ValueError(f"Configuration in {config_file} must be a mapping, got {type(config).__name__}")

    config['_meta'] = {
        'config_file': str(config_file.absolute()),
        'component_name': component_name,
    }

    logger.info(f"Loaded configuration from: {config_file}")
    return config


def validate_config(config: Dict[str, Any], required_sections: Optional[Sequence[str]] = None) -> bool:
    """
    Check that ``config`` is a mapping holding every required top-level section.

    Raises:
        ValueError: If the configuration is not a dict or sections are missing

    Examples:
        >>> validate_config(config, ['study_area', 'dates', 'export'])
        True
    """
    if not isinstance(config, dict):
        raise ValueError("Configuration must be a dictionary")

    missing = [section for section in (required_sections or []) if section not in config]
    if missing:
        raise ValueError(f"Missing required configuration sections: {missing}")
    return True


def get_config_value(config: Dict[str, Any], key_path: str, default: Any = None) -> Any:
    """
    Nested lookup with dot notation, e.g. 'edge.min_component_size'.

    Returns ``default`` when any key on the path is missing.
    """
    value = config
    for key in key_path.split('.'):
        if not isinstance(value, dict) or key not in value:
            return default
        value = value[key]
    return value


def save_config(config: Dict[str, Any], output_path: Union[str, Path]) -> None:
    """
    Write a configuration to YAML, dropping loader metadata ('_'-prefixed keys).

    Used to store the configuration of a run next to its outputs.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    public = {key: value for key, value in config.items() if not str(key).startswith('_')}
    with open(output_path, 'w', encoding='utf-8') as f:
        yaml.safe_dump(public, f, default_flow_style=False, sort_keys=False)

    logging.getLogger(__name__).info(f"Configuration saved to: {output_path}")
