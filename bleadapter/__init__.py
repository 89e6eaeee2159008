"""
bleadapter - BlueZ to MQTT bridge for Bluetooth Low Energy peripherals
"""

__version__ = "1.0.0"
