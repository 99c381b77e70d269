"""
Logging client configuration for the prompt registry.

Console output always; logs are also shipped to the centralized logging
service when LOGGING_HOST is set.
"""
import logging
import logging.handlers
import os
from typing import Iterable


def setup_logger(
    service_name: str,
    level: str = "INFO",
    noisy_loggers: Iterable[str] = (),
) -> logging.Logger:
    """
    Setup the service logger.

    Handlers go on the package logger, so every module logger created with
    logging.getLogger(__name__) inside prompt_registry inherits them.

    Args:
        service_name: Name shown in each record (e.g. 'prompt-registry')
        level: Log level name for the package logger
        noisy_loggers: Third-party loggers to quiet down to WARNING

    Returns:
        Configured logger
    """
    # Get logging service host and port from environment
    log_host = os.getenv('LOGGING_HOST')
    log_port = int(os.getenv('LOGGING_PORT', 9999))

    # Create logger
    logger = logging.getLogger('prompt_registry')
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Remove existing handlers
    logger.handlers = []

    # Add service name to all log records
    old_factory = logging.getLogRecordFactory()

    def record_factory(*args, **kwargs):
        record = old_factory(*args, **kwargs)
        record.service = service_name
        return record

    logging.setLogRecordFactory(record_factory)

    if log_host:
        # Send to logging service
        logger.addHandler(logging.handlers.SocketHandler(log_host, log_port))

    # Also add console handler for local debugging
    console_handler = logging.StreamHandler()
    console_formatter = logging.Formatter(
        '%(asctime)s - [%(service)s] - %(levelname)s - %(name)s - %(message)s'
    )
    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)

    for name in noisy_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger
