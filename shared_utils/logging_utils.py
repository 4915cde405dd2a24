"""
Standardized logging utilities for the multitemporal wetland composites pipeline.

All component loggers live under the ``wetland_composites`` namespace, so a
single call to setup_logging configures every stage (cloud masking, edge
denoising, reduction, export) at once. Handlers are attached to the namespace
logger rather than the root logger, and re-running setup_logging replaces
only the handlers it installed itself.

Author: Diego Bengochea
"""

import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Union

LOGGER_NAMESPACE = 'wetland_composites'

LOG_FORMATS = {
    'standard': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    'detailed': '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s',
    'simple': '%(levelname)s: %(message)s'
}

# Marks handlers owned by setup_logging
_HANDLER_FLAG = '_wetland_composites_handler'


def _parse_level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    parsed = logging.getLevelName(str(level).upper())
    if not isinstance(parsed, int):
        raise ValueError(f"Unknown logging level: {level}")
    return parsed


def setup_logging(
    level: Union[str, int] = 'INFO',
    component_name: Optional[str] = None,
    log_file: Optional[Union[str, Path]] = None,
    format_style: str = 'standard'
) -> logging.Logger:
    """
    Configure console (and optional file) logging for the pipeline namespace.

    Args:
        level: Logging level name or number
        component_name: Component whose logger is returned
        log_file: Optional log file; parent directories are created
        format_style: 'standard', 'detailed' or 'simple'

    Returns:
        logging.Logger: The component logger, or the namespace logger

    Examples:
        >>> logger = setup_logging('INFO', 'composites')
        >>> logger = setup_logging('DEBUG', 'cloud_masking', 'logs/masking.log')
    """
    level = _parse_level(level)
    namespace_logger = logging.getLogger(LOGGER_NAMESPACE)

    for handler in list(namespace_logger.handlers):
        if getattr(handler, _HANDLER_FLAG, False):
            namespace_logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(
        LOG_FORMATS.get(format_style, LOG_FORMATS['standard']),
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        setattr(handler, _HANDLER_FLAG, True)
        namespace_logger.addHandler(handler)

    namespace_logger.setLevel(level)
    return get_logger(component_name) if component_name else namespace_logger


def get_logger(component_name: str) -> logging.Logger:
    """
    Logger for one component, e.g. 'temporal_reduction' -> 'wetland_composites.temporal_reduction'.
    """
    return logging.getLogger(f'{LOGGER_NAMESPACE}.{component_name}')


def _banner(logger: logging.Logger, message: str) -> None:
    logger.info("=" * 80)
    logger.info(message)
    logger.info("=" * 80)


def log_pipeline_start(logger: logging.Logger, pipeline_name: str, parameters: Optional[Dict[str, Any]] = None) -> None:
    """
    Log the start banner of a pipeline with its key parameters.

    Nested sections are summarised by their size; keys starting with an
    underscore (loader metadata) are skipped.
    """
    _banner(logger, f"STARTING PIPELINE: {pipeline_name.upper()}")

    if parameters:
        logger.info("Pipeline parameters:")
        for key, value in parameters.items():
            if key.startswith('_'):
                continue
            if isinstance(value, dict):
                logger.info(f"  {key}: {len(value)} settings")
            else:
                logger.info(f"  {key}: {value}")


def log_pipeline_end(
    logger: logging.Logger,
    pipeline_name: str,
    success: bool = True,
    elapsed_time: Optional[float] = None
) -> None:
    """Log the end banner of a pipeline and its wall time as HH:MM:SS."""
    status = "COMPLETED SUCCESSFULLY" if success else "FAILED"
    logger.info("=" * 80)
    logger.info(f"PIPELINE {status}: {pipeline_name.upper()}")

    if elapsed_time is not None:
        minutes, seconds = divmod(int(elapsed_time), 60)
        hours, minutes = divmod(minutes, 60)
        logger.info(f"Total execution time: {hours:02d}:{minutes:02d}:{seconds:02d}")

    logger.info("=" * 80)


def log_section(logger: logging.Logger, section_name: str) -> None:
    logger.info(f"{'=' * 20} {section_name.upper()} {'=' * 20}")
