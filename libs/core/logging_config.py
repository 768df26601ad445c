"""
Logging for the Measurement Proof Service

One rotating file plus stdout, configured from the lifespan handler:

    logs/proof_service/system.log      (LOG_DIR overrides the directory)

Pipeline lines share a fixed shape so a single measurement can be followed
through the log:

    [Pipeline] <id> STAGE prove | START
    [Pipeline] <id> STATUS Pending -> Processing
    [Pipeline] <id> STAGE prove | DONE | elapsed=5321ms

    grep <measurement-id> logs/proof_service/system.log
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

LOG_DIR = Path(os.getenv("LOG_DIR", "logs/proof_service"))
SYSTEM_LOG_FILE = LOG_DIR / "system.log"
MAX_LOG_SIZE = 10 * 1024 * 1024
BACKUP_COUNT = 5

FILE_FORMAT = "%(asctime)s | %(levelname)-5s | %(name)-45s | %(message)s"
CONSOLE_FORMAT = "%(asctime)s | %(levelname)-5s | %(message)s"

# Libraries whose INFO output drowns out pipeline lines
QUIET_LOGGERS = ("asyncio", "multipart", "httpx", "httpcore", "uvicorn.access")

_configured = False


def _handlers(log_level: int, log_to_console: bool, log_to_file: bool) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []
    if log_to_file:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            SYSTEM_LOG_FILE,
            maxBytes=MAX_LOG_SIZE,
            backupCount=BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        handlers.append(file_handler)
    if log_to_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, "%H:%M:%S"))
        handlers.append(console_handler)
    for handler in handlers:
        handler.setLevel(log_level)
    return handlers


def setup_logging(
    level: Optional[str] = None,
    log_to_console: bool = True,
    log_to_file: bool = True,
    service_name: str = "proof_service",
) -> None:
    """
    Install the service's handlers on the root logger.

    Only the first call in a process has an effect, so tests can configure
    logging before the app lifespan runs.

    Args:
        level: DEBUG/INFO/WARNING/ERROR; falls back to LOG_LEVEL, then INFO
        log_to_console: Also write to stdout
        log_to_file: Write to the rotating system.log
        service_name: Logger that records the startup line
    """
    global _configured
    if _configured:
        return

    level_name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    log_level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    root.setLevel(log_level)
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in _handlers(log_level, log_to_console, log_to_file):
        root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _configured = True

    destination = str(SYSTEM_LOG_FILE.absolute()) if log_to_file else "stdout only"
    logging.getLogger(service_name).info(
        f"[Logging] {service_name} logging at {level_name} -> {destination}"
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_stage(
    logger: logging.Logger,
    measurement_id: str,
    stage: str,
    status: str,
    elapsed_ms: Optional[float] = None,
):
    """Pipeline stage event: START, DONE, FAILED or CANCELLED."""
    elapsed = f" | elapsed={elapsed_ms:.0f}ms" if elapsed_ms else ""
    logger.info(f"[Pipeline] {measurement_id} STAGE {stage} | {status}{elapsed}")


def log_transition(logger: logging.Logger, measurement_id: str, current: str, target: str):
    logger.info(f"[Pipeline] {measurement_id} STATUS {current} -> {target}")
