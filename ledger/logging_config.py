"""
Logging configuration for the ledger service.

Installs a single console handler on the "ledger" logger. Modules obtain
their own child logger with logging.getLogger(__name__), so every record
carries the module path (e.g. ledger.services.transfer_engine).

Amounts, account ids and rejection reasons are logged; owner names and
free-text references are not.
"""

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

ROOT_LOGGER_NAME = "ledger"


def setup_logging(level: str = "INFO") -> logging.Logger:
    """
    Configure the service logger.

    Safe to call more than once (e.g. on every app startup in tests):
    existing handlers are replaced rather than duplicated.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               Unknown names fall back to INFO.

    Returns:
        The configured "ledger" logger.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    logger.addHandler(handler)

    # uvicorn configures the root logger; don't print every line twice
    logger.propagate = False

    return logger
