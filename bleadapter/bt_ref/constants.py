"""
Core constants for the BLE adapter.

D-Bus and BlueZ names, the signal match rules used during a scan window,
property names read from the object cache and numeric result codes.
"""

# D-Bus Core Constants
DBUS_PROPERTIES = "org.freedesktop.DBus.Properties"
DBUS_OM_IFACE = "org.freedesktop.DBus.ObjectManager"
INTROSPECT_INTERFACE = "org.freedesktop.DBus.Introspectable"

# BlueZ Core Constants
ADAPTER_NAME = "hci0"
BLUEZ_SERVICE_NAME = "org.bluez"
BLUEZ_NAMESPACE = "/org/bluez/"
DEVICE_PATH_MARKER = "dev_"

# BlueZ Interface Constants
ADAPTER_INTERFACE = BLUEZ_SERVICE_NAME + ".Adapter1"
DEVICE_INTERFACE = BLUEZ_SERVICE_NAME + ".Device1"

# GATT Interface Constants
GATT_SERVICE_INTERFACE = BLUEZ_SERVICE_NAME + ".GattService1"
GATT_CHARACTERISTIC_INTERFACE = BLUEZ_SERVICE_NAME + ".GattCharacteristic1"
GATT_DESCRIPTOR_INTERFACE = BLUEZ_SERVICE_NAME + ".GattDescriptor1"

# Interfaces the adapter reacts to, in object-tree order
BLE_INTERFACES = (
    ADAPTER_INTERFACE,
    DEVICE_INTERFACE,
    GATT_SERVICE_INTERFACE,
    GATT_CHARACTERISTIC_INTERFACE,
    GATT_DESCRIPTOR_INTERFACE,
)

# Signal names (<interface>.<member>)
SIGNAL_INTERFACES_ADDED = DBUS_OM_IFACE + ".InterfacesAdded"
SIGNAL_INTERFACES_REMOVED = DBUS_OM_IFACE + ".InterfacesRemoved"
SIGNAL_PROPERTIES_CHANGED = DBUS_PROPERTIES + ".PropertiesChanged"

# Match rules
ADD_RULE = (
    "type='signal',interface='" + DBUS_OM_IFACE + "',member='InterfacesAdded'"
)
REMOVE_RULE = (
    "type='signal',interface='" + DBUS_OM_IFACE + "',member='InterfacesRemoved'"
)
PROPERTIES_RULE = (
    "type='signal',interface='" + DBUS_PROPERTIES + "',member='PropertiesChanged'"
)

RULE_SIGNALS = {
    ADD_RULE: SIGNAL_INTERFACES_ADDED,
    REMOVE_RULE: SIGNAL_INTERFACES_REMOVED,
    PROPERTIES_RULE: SIGNAL_PROPERTIES_CHANGED,
}

# D-Bus error names
DBUS_ERROR_NO_REPLY = "org.freedesktop.DBus.Error.NoReply"
DBUS_ERROR_TIMEOUT = "org.freedesktop.DBus.Error.Timeout"
DBUS_ERROR_TIMED_OUT = "org.freedesktop.DBus.Error.TimedOut"
DBUS_ERROR_UNKNOWN_OBJECT = "org.freedesktop.DBus.Error.UnknownObject"
DBUS_ERROR_UNKNOWN_METHOD = "org.freedesktop.DBus.Error.UnknownMethod"
DBUS_ERROR_SERVICE_UNKNOWN = "org.freedesktop.DBus.Error.ServiceUnknown"
BLUEZ_ERROR_DOES_NOT_EXIST = BLUEZ_SERVICE_NAME + ".Error.DoesNotExist"
BLUEZ_ERROR_NOT_AUTHORIZED = BLUEZ_SERVICE_NAME + ".Error.NotAuthorized"
BLUEZ_ERROR_NOT_PERMITTED = BLUEZ_SERVICE_NAME + ".Error.NotPermitted"
BLUEZ_ERROR_IN_PROGRESS = BLUEZ_SERVICE_NAME + ".Error.InProgress"
BLUEZ_ERROR_FAILED = BLUEZ_SERVICE_NAME + ".Error.Failed"

# Bluetooth base UUID (16- and 32-bit UUIDs are substituted into the first
# eight hex digits)
BASE_UUID__BLUETOOTH = "00000000-0000-1000-8000-00805f9b34fb"
BASE_UUID__SUFFIX = BASE_UUID__BLUETOOTH[8:]

# Sentinel reported for RSSI / TxPower when BlueZ does not supply a value
NO_SIGNAL_VALUE = -1

# Device1 property names
PROP_ADDRESS = "Address"
PROP_ADDRESS_TYPE = "AddressType"
PROP_ALIAS = "Alias"
PROP_NAME = "Name"
PROP_ICON = "Icon"
PROP_CLASS = "Class"
PROP_APPEARANCE = "Appearance"
PROP_UUIDS = "UUIDs"
PROP_PAIRED = "Paired"
PROP_CONNECTED = "Connected"
PROP_TRUSTED = "Trusted"
PROP_BLOCKED = "Blocked"
PROP_LEGACY_PAIRING = "LegacyPairing"
PROP_MODALIAS = "Modalias"
PROP_RSSI = "RSSI"
PROP_TX_POWER = "TxPower"
PROP_MANUFACTURER_DATA = "ManufacturerData"
PROP_SERVICE_DATA = "ServiceData"
PROP_SERVICES_RESOLVED = "ServicesResolved"
PROP_ADVERTISING_FLAGS = "AdvertisingFlags"
PROP_ADAPTER = "Adapter"

# Adapter1 property names
PROP_POWERED = "Powered"
PROP_DISCOVERABLE = "Discoverable"
PROP_PAIRABLE = "Pairable"
PROP_PAIRABLE_TIMEOUT = "PairableTimeout"
PROP_DISCOVERABLE_TIMEOUT = "DiscoverableTimeout"
PROP_DISCOVERING = "Discovering"

# GATT property names
PROP_UUID = "UUID"
PROP_PRIMARY = "Primary"
PROP_DEVICE = "Device"
PROP_INCLUDES = "Includes"
PROP_SERVICE = "Service"
PROP_CHARACTERISTIC = "Characteristic"
PROP_VALUE = "Value"
PROP_NOTIFYING = "Notifying"
PROP_FLAGS = "Flags"

# Result/Error Codes
RESULT_OK = 0
RESULT_ERR = 1
RESULT_ERR_NOT_CONNECTED = 2
RESULT_ERR_NOT_SUPPORTED = 3
RESULT_ERR_WRONG_STATE = 5
RESULT_ERR_ACCESS_DENIED = 6
RESULT_EXCEPTION = 7
RESULT_ERR_BAD_ARGS = 8
RESULT_ERR_NOT_FOUND = 9
RESULT_ERR_NO_REPLY = 14
RESULT_ERR_CONFIG = 20
RESULT_ERR_BROKER = 21
RESULT_ERR_COMMAND = 22
