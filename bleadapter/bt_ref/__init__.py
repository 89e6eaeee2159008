"""
Bluetooth reference data and constants.
"""

from . import constants
from . import utils

__all__ = ["constants", "utils"]
