"""
Logging Module
==============

Structured logging for the engine: snake_case event names, JSON lines in
production, rich console output in development.

    logger = get_logger(__name__)
    logger.warning("nullifier_replay_detected", nullifier_hash="0x12ab...")
"""

from cpoe.logging.logger import get_logger, setup_logging


__all__ = [
    "get_logger",
    "setup_logging",
]
