"""
Audit Package

Structured logging configuration and the child activity logger.
"""

from farmledger.audit.logger import ActivityLogger, configure_log_level

__all__ = [
    "ActivityLogger",
    "configure_log_level",
]
