"""
Zenbook Duo — exception types.

A missing device is never an exception; drivers report absence through
their return value.
"""


class DuoError(RuntimeError):
    """Base class for every failure the CLI turns into exit code 1."""


class ConfigError(DuoError):
    """An environment override could not be parsed."""


class TransferError(DuoError):
    """USB control transfer failed even after detaching the kernel driver."""


class BluetoothError(DuoError):
    """bluetoothctl is missing, timed out, or the GATT write failed."""


class DeviceNotPairedError(BluetoothError):
    """No paired Bluetooth device matches the configured name."""
