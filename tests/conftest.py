"""
Shared fixtures: a Config pointing at a temporary state file, plus fakes
for the USB device and the external tools.
"""

import subprocess

import pytest
from usb.core import USBError

from duo.config import Config


@pytest.fixture
def config(tmp_path):
    """Config with a private state file and no settle delays."""
    return Config(state_file=tmp_path / "kb-level.state",
                  bt_settle=0.0, event_settle=0.0, poll_interval=0.0)


class FakeUsbDevice:
    """Stands in for usb.core.Device; records every call in ``calls``.

    ``fail`` is the number of ctrl_transfer calls that raise before one
    succeeds (use a large number to fail forever).
    """

    def __init__(self, fail=0, kernel_active=True, reattach_fails=False):
        self.fail = fail
        self.kernel_active = kernel_active
        self.reattach_fails = reattach_fails
        self.calls = []
        self.transfers = []
        self.bus = 3
        self.address = 7

    def ctrl_transfer(self, bmRequestType, bRequest, wValue, wIndex, data, timeout=None):
        self.calls.append("transfer")
        self.transfers.append((bmRequestType, bRequest, wValue, wIndex, bytes(data)))
        if self.fail > 0:
            self.fail -= 1
            raise USBError("Resource busy", errno=16)
        return len(data)

    def is_kernel_driver_active(self, iface):
        return self.kernel_active

    def detach_kernel_driver(self, iface):
        self.calls.append("detach")
        self.kernel_active = False

    def attach_kernel_driver(self, iface):
        self.calls.append("attach")
        if self.reattach_fails:
            raise USBError("No such device", errno=19)
        self.kernel_active = True


@pytest.fixture
def fake_usb(monkeypatch):
    """Patch pyusb so find() returns ``fake_usb.device`` (None = absent)."""

    class Bus:
        device = None

    def find(find_all=False, idVendor=None, idProduct=None):
        if find_all:
            return [Bus.device] if Bus.device is not None else []
        return Bus.device

    monkeypatch.setattr("usb.core.find", find)
    monkeypatch.setattr("usb.util.claim_interface",
                        lambda dev, iface: dev.calls.append("claim"))
    monkeypatch.setattr("usb.util.release_interface",
                        lambda dev, iface: dev.calls.append("release"))
    monkeypatch.setattr("usb.util.dispose_resources",
                        lambda dev: dev.calls.append("dispose"))
    return Bus


class FakeBluetoothctl:
    """Replaces subprocess.run inside duo.bluetooth.

    ``responses`` maps the first bluetoothctl argument ("devices",
    "connect", "trust", or "" for the interactive GATT session) to either a
    (returncode, stdout) tuple or an exception instance to raise.
    """

    def __init__(self, responses=None):
        self.responses = responses or {}
        self.calls = []

    def __call__(self, cmd, input=None, capture_output=False, text=False, timeout=None):
        key = cmd[1] if len(cmd) > 1 else ""
        self.calls.append((cmd, input, timeout))
        resp = self.responses.get(key, (0, ""))
        if isinstance(resp, BaseException):
            raise resp
        code, out = resp
        return subprocess.CompletedProcess(cmd, code, out, "")


@pytest.fixture
def btctl(monkeypatch):
    fake = FakeBluetoothctl()
    monkeypatch.setattr("duo.bluetooth.shutil.which", lambda name: "/usr/bin/" + name)
    monkeypatch.setattr("duo.bluetooth.subprocess.run", fake)
    return fake
