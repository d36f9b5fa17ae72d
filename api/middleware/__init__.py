"""
API middleware and exception handling.
"""

from .error_handler import setup_exception_handlers

__all__ = ["setup_exception_handlers"]
