"""
EduChain Shared Library
=======================

Common utilities, configuration, and client abstractions used by the
certificate portal.

Modules:
    - config: Configuration management with Pydantic Settings
    - logging: Structured logging with structlog
    - auth: JWT authentication for institutions
    - database: MongoDB client (motor)
    - blockchain: Ledger client (mock / Base testnet / Base mainnet)
    - ipfs: Pinning client (mock / Pinata)
    - models: Shared Pydantic models

Version: 0.1.0
"""

__version__ = "0.1.0"
__author__ = "EduChain Team"

from educhain.config import settings
from educhain.logging import get_logger, setup_logging

__all__ = [
    "settings",
    "get_logger",
    "setup_logging",
    "__version__",
]
