"""
Centralized logging configuration for the vending machine.

Every record carries the machine id, so logs from several simulated
machines written to the same file can be told apart.

Log Format:
    2026-10-17 10:15:30 [INFO    ] [VM-001] vending_machine - Dispensed Coke, 0 left

Usage:
    # At start-up
    from logging_config import setup_logging, get_logger

    setup_logging(log_level=logging.INFO, machine_id="VM-001")

    # In modules
    logger = get_logger(__name__)
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union


APP_NAME = "vending_machine"


class MachineContextFilter(logging.Filter):
    """Adds the machine id to each log record"""

    def __init__(self, machine_id: str):
        super().__init__()
        self.machine_id = machine_id

    def filter(self, record: logging.LogRecord) -> bool:
        record.machine_id = self.machine_id
        return True


def setup_logging(
    app_name: str = APP_NAME,
    log_level: Union[int, str] = logging.INFO,
    log_dir: Optional[Path] = None,
    enable_file_logging: bool = False,
    machine_id: str = "-",
) -> logging.Logger:
    """
    Configure application logging.

    Sets up a console handler and, optionally, a rotating file handler.
    Calling it again replaces the handlers from the previous call.

    Args:
        app_name: Name of the root logger for the application
        log_level: Minimum log level, as a number or a name such as "DEBUG"
        log_dir: Directory for log files (default: ./logs relative to this file)
        enable_file_logging: Whether to write to a log file as well
        machine_id: Identifier stamped on every record

    Returns:
        Configured application logger
    """
    logger = logging.getLogger(app_name)
    logger.setLevel(log_level)
    logger.propagate = False
    logger.handlers.clear()

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)-8s] [%(machine_id)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    context_filter = MachineContextFilter(machine_id)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(context_filter)
    logger.addHandler(console_handler)

    if enable_file_logging:
        if log_dir is None:
            log_dir = Path(__file__).parent / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)

        log_file = log_dir / f"{app_name}.log"
        file_handler = RotatingFileHandler(
            filename=log_file,
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8"
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(context_filter)
        logger.addHandler(file_handler)

        logger.info(f"File logging enabled: {log_file}")

    logger.debug(f"Logging configured at level {logging.getLevelName(logger.level)}")
    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a child logger under the application namespace.

    "__main__" and other module names outside the namespace are moved
    under it, e.g. "__main__" -> "vending_machine.__main__".
    """
    if not name.startswith(APP_NAME):
        name = f"{APP_NAME}.{name}"
    return logging.getLogger(name)
