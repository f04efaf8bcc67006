"""
Loading of the monitor's JSON configuration file.
"""
import json
import logging
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from monitor.exceptions import ConfigError
from monitor.models import MonitorConfig

logger = logging.getLogger(__name__)


def load_monitor_config(
    path: Union[str, Path],
    check_interval_minutes: Optional[float] = None,
) -> MonitorConfig:
    """
    Load and validate the position list.

    The file holds `positions` and optionally `checkIntervalMinutes`; a
    `monitoring.checkIntervalMinutes` block is accepted as well.

    Args:
        path: JSON file path
        check_interval_minutes: Overrides the interval from the file

    Raises:
        ConfigError: If the file is missing, not JSON or fails validation
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(path, "r") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config root in {path} must be an object")

    monitoring = data.pop("monitoring", None)
    if isinstance(monitoring, dict) and "checkIntervalMinutes" in monitoring:
        data.setdefault("checkIntervalMinutes", monitoring["checkIntervalMinutes"])
    if check_interval_minutes is not None:
        data.pop("checkIntervalMinutes", None)
        data["check_interval_minutes"] = check_interval_minutes

    try:
        config = MonitorConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config in {path}: {e}") from e

    if not config.positions:
        raise ConfigError(f"No positions configured in {path}")

    logger.info(f"Loaded {len(config.positions)} positions from {path}")
    return config
