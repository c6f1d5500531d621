"""
Zenbook Duo keyboard backlight protocol — constants, payload builders, level parsing.

The same 3-byte magic sequence drives the backlight over both transports:
wrapped in a 16-byte HID feature report on USB, or written bare to a vendor
GATT characteristic over Bluetooth.
"""

# ── USB Identifiers ──────────────────────────────────────────────────────
ASUS_VID  = 0x0B05
DUO_PIDS  = (0x1BF2, 0x1B2C)
USB_IFACE = 4

# ── HID feature report ───────────────────────────────────────────────────
REPORT_ID   = 0x5A
REPORT_LEN  = 16
MAGIC       = bytes([0xBA, 0xC5, 0xC4])

REQTYPE_SET = 0x21   # host-to-device, class, interface
REQ_SET_REPORT = 0x09
REPORT_TYPE_FEATURE = 0x03
WVALUE = (REPORT_TYPE_FEATURE << 8) | REPORT_ID   # 0x035A

USB_TIMEOUT_MS = 500

# ── Bluetooth GATT ───────────────────────────────────────────────────────
BT_NAME    = "ASUS Zenbook Duo Keyboard"
GATT_ATTR  = "service001b/char003b"
BT_ADAPTER = "hci0"

# ── Levels ───────────────────────────────────────────────────────────────
LEVEL_MIN = 0
LEVEL_MAX = 3
LEVEL_NAMES = {0: "off", 1: "low", 2: "medium", 3: "max"}


def _check_level(level):
    """Return level as int, or raise ValueError if it is not 0–3."""
    if isinstance(level, bool) or not isinstance(level, int):
        raise ValueError(f"brightness level must be an int, got {level!r}")
    if not LEVEL_MIN <= level <= LEVEL_MAX:
        raise ValueError(f"brightness level must be {LEVEL_MIN}-{LEVEL_MAX}, got {level}")
    return level


def parse_level(text):
    """Parse a user-supplied level ("0".."3")."""
    text = str(text).strip()
    if len(text) != 1 or text not in "0123":
        raise ValueError(f"invalid brightness level {text!r} (use 0, 1, 2 or 3)")
    return int(text)


# ── Payload builders ─────────────────────────────────────────────────────
def _usb_report(level):
    """Build the 16-byte SET_REPORT payload.

    Layout:
        [0]    report id (0x5A)
        [1:4]  magic BA C5 C4
        [4]    level 0–3
        [5:16] zero padding
    """
    f = bytearray(REPORT_LEN)
    f[0] = REPORT_ID
    f[1:4] = MAGIC
    f[4] = _check_level(level)
    return bytes(f)


def _gatt_payload(level):
    """Build the 4-byte GATT write: BA C5 C4 <level>."""
    return MAGIC + bytes([_check_level(level)])


def _gatt_hex(payload):
    """Format bytes the way ``bluetoothctl gatt.write`` expects them."""
    return " ".join(f"0x{b:02x}" for b in payload)


def _bluez_attr_path(mac, attr=GATT_ATTR, adapter=BT_ADAPTER):
    """BlueZ object path for a characteristic on the device with this MAC."""
    return f"/org/bluez/{adapter}/dev_{mac.upper().replace(':', '_')}/{attr.strip('/')}"
