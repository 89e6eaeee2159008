"""
Core functionality: configuration, logging and errors.
"""

from . import config
from . import errors
from . import log

__all__ = ["config", "errors", "log"]
