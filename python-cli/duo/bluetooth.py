"""
Zenbook Duo — set the backlight over Bluetooth via bluetoothctl's GATT menu.

Usage flow:
    1. resolve the keyboard's MAC (KB_MAC, else first paired name match)
    2. best-effort ``connect`` and ``trust``
    3. select the vendor characteristic and write BA C5 C4 <level>

A timeout passed by the caller is a deadline for the whole sequence, so a
wedged BlueZ can't hold up the USB side of a combined command.
"""

import logging
import re
import shutil
import subprocess
import time

from duo.errors import BluetoothError, DeviceNotPairedError
from duo.protocol import _bluez_attr_path, _gatt_hex, _gatt_payload

log = logging.getLogger(__name__)

CMD_TIMEOUT = 15.0

_DEVICE_LINE = re.compile(r"^Device\s+([0-9A-Fa-f]{2}(?::[0-9A-Fa-f]{2}){5})\s+(.*)$")
_ANSI = re.compile(r"\x1b\[[0-9;]*[A-Za-z]|\x01|\x02")
_WRITE_FAILED = re.compile(r"fail|error|no attribute|not available|unable|invalid", re.IGNORECASE)
_PROMPT = re.compile(r"^\[[^\]]*\][#>]\s*")
_NOTICE = re.compile(r"^\[(CHG|NEW|DEL)\]")


def _write_errors(output):
    """Failure lines printed in reply to gatt.write.

    Lines before the echoed command and [CHG]/[NEW]/[DEL] notices are
    session noise; prompts are stripped so a device alias can't match.
    """
    lines = [ln.strip() for ln in output.splitlines()]
    for i, ln in enumerate(lines):
        if "gatt.write" in ln:
            lines = lines[i + 1:]
            break
    bad = []
    for ln in lines:
        if _NOTICE.match(ln):
            continue
        text = _PROMPT.sub("", ln)
        if _WRITE_FAILED.search(text):
            bad.append(text)
    return bad


def _remaining(deadline):
    if deadline is None:
        return CMD_TIMEOUT
    left = deadline - time.monotonic()
    if left <= 0:
        raise BluetoothError("Bluetooth operation timed out")
    return min(left, CMD_TIMEOUT)


def _btctl(args, deadline=None, script=None):
    """Run bluetoothctl and return the CompletedProcess (output ANSI-stripped)."""
    if shutil.which("bluetoothctl") is None:
        raise BluetoothError("bluetoothctl not found (is BlueZ installed?)")
    cmd = ["bluetoothctl"] + list(args)
    try:
        r = subprocess.run(cmd, input=script, capture_output=True, text=True,
                           timeout=_remaining(deadline))
    except subprocess.TimeoutExpired as e:
        raise BluetoothError(f"{' '.join(cmd)} timed out") from e
    r.stdout = _ANSI.sub("", r.stdout or "")
    return r


def paired_devices(deadline=None):
    """[(mac, name), ...] as listed by ``bluetoothctl devices``."""
    r = _btctl(["devices"], deadline)
    out = []
    for line in r.stdout.splitlines():
        m = _DEVICE_LINE.match(line.strip())
        if m:
            out.append((m.group(1).upper(), m.group(2).strip()))
    return out


def resolve_mac(config, deadline=None):
    if config.bt_mac:
        return config.bt_mac.upper()
    want = config.bt_name.lower()
    for mac, name in paired_devices(deadline):
        if want in name.lower():
            return mac
    raise DeviceNotPairedError(
        f"Keyboard '{config.bt_name}' not found in 'bluetoothctl devices'. Is it paired?")


def _best_effort(args, deadline):
    try:
        r = _btctl(args, deadline)
        log.debug("bluetoothctl %s -> %d", " ".join(args), r.returncode)
    except BluetoothError as e:
        log.debug("bluetoothctl %s ignored: %s", " ".join(args), e)


def set_bt_brightness(level, config, timeout=None):
    """Write the backlight level to the keyboard's GATT characteristic.

    Returns:
        The MAC address written to.

    Raises:
        DeviceNotPairedError if no MAC is configured and none matches the name.
        BluetoothError on timeout or a failed write.
    """
    payload = _gatt_payload(level)
    deadline = None if timeout is None else time.monotonic() + timeout

    mac = resolve_mac(config, deadline)
    _best_effort(["connect", mac], deadline)
    _best_effort(["trust", mac], deadline)

    path = _bluez_attr_path(mac, config.gatt_attr, config.bt_adapter)
    script = (f"gatt.select-attribute {path}\n"
              f"gatt.write \"{_gatt_hex(payload)}\"\n"
              "quit\n")
    r = _btctl([], deadline, script=script)
    bad = _write_errors(r.stdout)
    if r.returncode != 0 or bad:
        detail = bad[0] if bad else f"exit {r.returncode}"
        raise BluetoothError(f"GATT write to {path} failed: {detail}")
    log.info("Wrote %s to %s", payload.hex(" "), path)
    return mac
