"""
Utility modules for esrflow.
"""

from .logging_config import current_log_file, setup_logging

__all__ = [
    "current_log_file",
    "setup_logging",
]
