"""
Utilities package for the Notespace identity service.

This package contains crypto primitives, validation, error handling and
audit logging used throughout the application.
"""

__version__ = "1.0.0"
__all__ = []
