import json
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from cartelera.config import settings

# --- Logger Setup ---
_loggers: Dict[str, logging.Logger] = {}

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(module)s.%(funcName)s:%(lineno)d - %(message)s"


def setup_logger(logger_name: str, log_file_prefix: str, level: int | str = logging.INFO) -> logging.Logger:
    """Configures and returns a logger that outputs to console and a timestamped file.

    Library modules log through ``logging.getLogger(__name__)``; configuring the
    ``cartelera`` logger here is enough for all of them to reach the handlers.
    """
    if logger_name in _loggers:
        return _loggers[logger_name]

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger = logging.getLogger(logger_name)
    logger.setLevel(level)
    logger.propagate = False

    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)

    ch = logging.StreamHandler()
    ch.setLevel(level)
    ch.setFormatter(formatter)
    logger.addHandler(ch)

    if settings.file_outputs.enable_file_logging:
        log_dir = settings.file_outputs.log_output_directory
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            fh = logging.FileHandler(log_dir / f"{log_file_prefix}_{timestamp}.log", encoding="utf-8")
            fh.setLevel(logging.DEBUG)
            fh.setFormatter(formatter)
            logger.addHandler(fh)
        except OSError as e:
            logger.error(f"Failed to create file handler for logger {logger_name} at {log_dir}: {e}", exc_info=True)

    _loggers[logger_name] = logger
    logger.debug(f"Logger '{logger_name}' initialized.")
    return logger


# --- File Output Utilities ---

def _serialize_item(item: Any) -> Any:
    if isinstance(item, (datetime, date)):
        return item.isoformat()
    if isinstance(item, Path):
        return str(item)
    return str(item)


def save_to_json_file(
    data_to_save: List[Dict[str, Any]],
    filename_prefix: str,
    sub_folder: Optional[str] = None,
    logger_obj: Optional[logging.Logger] = None,
) -> Optional[Path]:
    """Writes the run's records to ``<output dir>/<sub_folder>/<prefix>_<timestamp>.json``.

    Returns the written path, or None when JSON output is disabled or there is nothing to write.
    """
    current_logger = logger_obj or logging.getLogger(__name__)
    if not settings.file_outputs.enable_json_output:
        current_logger.debug(f"JSON output disabled. Skipping save for '{filename_prefix}'.")
        return None

    if not data_to_save:
        current_logger.info(f"No data provided to save_to_json_file for prefix '{filename_prefix}'.")
        return None

    output_dir = settings.file_outputs.base_output_directory / (sub_folder or filename_prefix)
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filepath = output_dir / f"{filename_prefix}_{timestamp}.json"

    with open(filepath, 'w', encoding='utf-8') as f:
        json.dump(data_to_save, f, indent=4, ensure_ascii=False, default=_serialize_item)
    current_logger.info(f"Saved {len(data_to_save)} records to JSON file: {filepath}")
    return filepath
