"""
Logging Module
==============

Structured logging using structlog with JSON output for production
and colored console output for development.

Usage:
    from educhain.logging import get_logger, setup_logging

    # Setup at application start
    setup_logging()

    # Get logger for a module
    logger = get_logger(__name__)

    # Log with context
    logger.info("certificate_issued", token_id=12, institution_id="...")
    logger.error("ledger_write_failed", error=str(e), stage="ledger_write")
"""

from educhain.logging.logger import (
    bind_context,
    clear_context,
    get_logger,
    log_context,
    setup_logging,
)


__all__ = [
    "get_logger",
    "setup_logging",
    "bind_context",
    "clear_context",
    "log_context",
]
