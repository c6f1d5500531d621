"""
Zenbook Duo — runtime configuration.

Every field has a fixed default and an environment override, so the same
values can be tuned per-machine without editing code:

    ASUS_VENDOR          USB vendor id (hex)
    DUO_KB_USB_IDS       comma-separated USB product ids (hex)
    TOP_OUT / BOT_OUT    primary / secondary display output names
    KB_NAME / KB_MAC     Bluetooth device name / address
    KB_ATTR              GATT characteristic path below the device object
    KB_ADAPTER           BlueZ adapter (hci0)
    KB_USB_IFACE         HID interface carrying the backlight report
    KB_STATE             brightness state file
    DUO_POLL_INTERVAL    seconds between presence polls without udevadm
    DUO_EVENT_SETTLE     seconds to wait after a USB event
    DUO_BT_SETTLE        seconds to wait after undock before using Bluetooth
    KB_BT_TIMEOUT        Bluetooth timeout for cycle/preset commands
    DUO_WATCH_BT_TIMEOUT Bluetooth timeout inside the watcher
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Tuple

from duo.errors import ConfigError
from duo.protocol import ASUS_VID, BT_ADAPTER, BT_NAME, DUO_PIDS, GATT_ATTR, USB_IFACE


def _default_state_file(environ: Mapping[str, str]) -> Path:
    base = environ.get("XDG_STATE_HOME") or os.path.join(
        environ.get("HOME") or str(Path.home()), ".local", "state")
    return Path(base) / "zenbook-duo-kbd" / "kb-level.state"


def _parse_hex(name: str, value: str) -> int:
    try:
        n = int(value.strip(), 16)
    except ValueError:
        raise ConfigError(f"{name}: {value!r} is not a hex id") from None
    if not 0 <= n <= 0xFFFF:
        raise ConfigError(f"{name}: {value!r} out of range")
    return n


def _parse_seconds(name: str, value: str) -> float:
    try:
        n = float(value)
    except ValueError:
        raise ConfigError(f"{name}: {value!r} is not a number") from None
    if n < 0:
        raise ConfigError(f"{name}: must not be negative")
    return n


@dataclass(frozen=True)
class Config:
    vendor_id: int = ASUS_VID
    product_ids: Tuple[int, ...] = DUO_PIDS
    primary_output: str = "eDP-1"
    secondary_output: str = "eDP-2"
    bt_name: str = BT_NAME
    bt_mac: Optional[str] = None
    gatt_attr: str = GATT_ATTR
    bt_adapter: str = BT_ADAPTER
    usb_interface: int = USB_IFACE
    state_file: Path = Path("kb-level.state")
    poll_interval: float = 2.0
    event_settle: float = 0.5
    bt_settle: float = 2.0
    bt_timeout: float = 1.0
    watch_bt_timeout: float = 10.0

    @property
    def usb_ids(self):
        """(vid, pid) pairs identifying the keyboard on USB."""
        return [(self.vendor_id, pid) for pid in self.product_ids]

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Config":
        env = os.environ if environ is None else environ
        kw = {"state_file": _default_state_file(env)}

        if env.get("ASUS_VENDOR"):
            kw["vendor_id"] = _parse_hex("ASUS_VENDOR", env["ASUS_VENDOR"])
        if env.get("DUO_KB_USB_IDS"):
            pids = [p for p in env["DUO_KB_USB_IDS"].split(",") if p.strip()]
            if not pids:
                raise ConfigError("DUO_KB_USB_IDS: no product ids given")
            kw["product_ids"] = tuple(_parse_hex("DUO_KB_USB_IDS", p) for p in pids)

        for key, field in (("TOP_OUT", "primary_output"), ("BOT_OUT", "secondary_output"),
                           ("KB_NAME", "bt_name"), ("KB_MAC", "bt_mac"),
                           ("KB_ATTR", "gatt_attr"), ("KB_ADAPTER", "bt_adapter")):
            if env.get(key):
                kw[field] = env[key].strip()

        if env.get("KB_USB_IFACE"):
            try:
                kw["usb_interface"] = int(env["KB_USB_IFACE"])
            except ValueError:
                raise ConfigError(f"KB_USB_IFACE: {env['KB_USB_IFACE']!r} is not an int") from None
        if env.get("KB_STATE"):
            kw["state_file"] = Path(env["KB_STATE"]).expanduser()

        for key, field in (("DUO_POLL_INTERVAL", "poll_interval"),
                           ("DUO_EVENT_SETTLE", "event_settle"),
                           ("DUO_BT_SETTLE", "bt_settle"),
                           ("KB_BT_TIMEOUT", "bt_timeout"),
                           ("DUO_WATCH_BT_TIMEOUT", "watch_bt_timeout")):
            if env.get(key):
                kw[field] = _parse_seconds(key, env[key])

        return cls(**kw)
