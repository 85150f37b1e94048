import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

# Global variables to track logging state
_is_logging_configured = False
_current_log_file = None


def setup_logging(log_dir: str = "logs", level: Optional[str] = None):
    """Configure logging for all modules"""
    global _is_logging_configured, _current_log_file

    # If logging is already configured, return the existing logger
    if _is_logging_configured:
        return logging.getLogger()

    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    # Create a timestamp for the log file
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    _current_log_file = log_path / f"substrate_indexer_{timestamp}.log"

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # File handler with UTF-8 encoding
    file_handler = logging.FileHandler(_current_log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)

    # Console handler with proper encoding for Windows
    if sys.platform == "win32":
        sys.stdout.reconfigure(encoding="utf-8")
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel((level or "INFO").upper())
    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    # Set higher log level for noisy third-party libraries
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)

    _is_logging_configured = True
    return root_logger


def get_current_log_file() -> Optional[Path]:
    """Get the path to the current log file"""
    return _current_log_file
