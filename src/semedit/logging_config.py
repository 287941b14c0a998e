import sys
import os
from pathlib import Path
from loguru import logger

# Flag to track if logging has been configured
_logging_configured = False

LOG_DIR_ENV = "SEMEDIT_LOG_DIR"


def _log_dir() -> Path:
    override = os.getenv(LOG_DIR_ENV)
    if override:
        return Path(override)
    return Path.home() / ".semedit" / "logs"


def setup_logging(level="INFO", suppress_console=None, enable_file_logging=None):
    """
    Configures the global logger.

    Console logging goes to stderr so stdout stays free for the MCP stdio
    transport and for --json output. File logging is opt-in via
    SEMEDIT_FILE_LOGGING=1 or enable_file_logging=True.

    Args:
        level: Logging level (default: INFO)
        suppress_console: If True, suppress console logging. If None, check SEMEDIT_MACHINE_MODE env var.
        enable_file_logging: If True, enable file logging. If None, check SEMEDIT_FILE_LOGGING env var.
    """
    global _logging_configured

    if _logging_configured:
        return
    _logging_configured = True

    logger.remove()

    if suppress_console is None:
        suppress_console = os.getenv("SEMEDIT_MACHINE_MODE", "").lower() in ("1", "true", "yes")

    if not suppress_console:
        logger.add(
            sys.stderr,
            level=level,
            format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
            colorize=True
        )

    if enable_file_logging is None:
        enable_file_logging = os.getenv("SEMEDIT_FILE_LOGGING", "").lower() in ("1", "true", "yes")

    if enable_file_logging:
        log_dir = _log_dir()
        log_dir.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_dir / "semedit.log",
            level="INFO",
            rotation="10 MB",
            retention="1 day",
            compression="gz",
            catch=True,
            serialize=False
        )


# Configure the logger on import (will check env var for machine mode)
setup_logging()
