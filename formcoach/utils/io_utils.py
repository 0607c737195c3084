"""
I/O utilities: YAML configuration loading and logging setup.
"""

import logging
from pathlib import Path
from typing import Dict, Union

import yaml

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(levelname)s | %(name)s | %(message)s"


def load_config(config_path: Union[str, Path]) -> Dict:
    """
    Loads a configuration mapping from a YAML file.

    Args:
        config_path (str | Path): Path to the YAML configuration file.

    Returns:
        Dict: The loaded configuration (empty for an empty file).

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the top level of the file is not a mapping.
    """
    path = Path(config_path)
    with open(path, 'r') as f:
        config = yaml.safe_load(f)
    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ValueError(f"Config file {path} must contain a mapping, got {type(config).__name__}")
    logger.debug(f"Loaded config from {path}")
    return config


def configure_logging(level: Union[int, str] = logging.INFO) -> None:
    """
    Configure root logging with the project's format.

    Args:
        level (int | str): Logging level, e.g. ``"DEBUG"`` or ``logging.INFO``.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logging.basicConfig(level=level, format=LOG_FORMAT)
