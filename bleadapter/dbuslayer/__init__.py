"""
BlueZ object layer: cache facade, typed snapshots, signal classification and
the discovery engine.  ``bus`` (dbus-python) is imported on demand by
:meth:`ObjectCache.open`.
"""

from bleadapter.dbuslayer.adapter import Adapter
from bleadapter.dbuslayer.characteristic import Characteristic
from bleadapter.dbuslayer.descriptor import Descriptor
from bleadapter.dbuslayer.device import Device
from bleadapter.dbuslayer.manager import ObjectCache
from bleadapter.dbuslayer.service import Service

__all__ = [
    "Adapter",
    "Characteristic",
    "Descriptor",
    "Device",
    "ObjectCache",
    "Service",
]
