import logging
import signal
import subprocess
import sys
from contextlib import closing

from duo.bluetooth import set_bt_brightness
from duo.device import list_usb_devices, set_usb_brightness
from duo.display import DisplayController
from duo.errors import DuoError
from duo.presence import PresenceDetector
from duo.protocol import LEVEL_NAMES
from duo.state import BrightnessStore, next_level
from duo.watch import Dispatcher, event_source, run

log = logging.getLogger(__name__)


def _label(level):
    return f"{level} ({LEVEL_NAMES[level]})"


def cmd_status(config):
    print("Zenbook Duo keyboard")
    print("=" * 60)
    det = PresenceDetector(config)
    docked = det.is_docked()
    print(f"  Docked:       {'yes' if docked else 'no'}  (via {det.last_source or 'no source'})")
    for vid, pid, bus, addr in list_usb_devices(config):
        print(f"  USB:          {vid:04x}:{pid:04x}  bus {bus:03d} device {addr:03d}")
    level = BrightnessStore(config.state_file).read()
    print(f"  Level:        {_label(level)}  [{config.state_file}]")
    backend = DisplayController(config).backend()
    print(f"  Display tool: {backend.tool if backend else 'none'}")
    print(f"  Outputs:      top={config.primary_output} bottom={config.secondary_output}")
    return 0


def cmd_usb(level, config):
    print(f"Setting USB backlight to {_label(level)}...")
    try:
        sent = set_usb_brightness(level, config)
    except DuoError as e:
        print(f"  USB: {e}", file=sys.stderr)
        return 1
    print("  -> Done." if sent else "  Keyboard not docked, nothing to do.")
    return 0


def cmd_bt(level, config, timeout=None):
    print(f"Setting Bluetooth backlight to {_label(level)}...")
    try:
        mac = set_bt_brightness(level, config, timeout=timeout)
    except DuoError as e:
        print(f"  Bluetooth: {e}", file=sys.stderr)
        return 1
    print(f"  -> Done ({mac}).")
    return 0


def _apply_usb(level, config):
    """Send level over USB. Returns False only if the transfer failed."""
    try:
        set_usb_brightness(level, config)
    except DuoError as e:
        print(f"USB brightness failed: {e}", file=sys.stderr)
        return False
    return True


def _apply_bt(level, config):
    """Send level over Bluetooth within bt_timeout. Failure is only a warning."""
    try:
        set_bt_brightness(level, config, timeout=config.bt_timeout)
    except DuoError as e:
        print(f"Warning: Bluetooth brightness failed: {e}; continuing.", file=sys.stderr)


def _report(level):
    if level == 0:
        print("Set brightness to off.")
    elif level == 3:
        print("Set brightness to max.")
    else:
        print(f"Set brightness to {_label(level)}.")


def cmd_cycle(config, policy="toggle", usb_only=False):
    """Advance the stored level and apply it.

    The state lock covers only the read-modify-write; the transports run
    after it is released, so the new level is stored even if USB fails.
    """
    store = BrightnessStore(config.state_file)
    _, new = store.update(lambda level: next_level(level, policy))
    usb_ok = _apply_usb(new, config)
    if not usb_ok:
        print(f"Brightness stored as {_label(new)} but not applied over USB.", file=sys.stderr)
    if not usb_only:
        _apply_bt(new, config)
    _report(new)
    return 0 if usb_ok else 1


def cmd_set(level, config, usb_only=False):
    """Apply a preset level; it is stored only once USB succeeded or found no keyboard."""
    if not _apply_usb(level, config):
        return 1
    BrightnessStore(config.state_file).set(level)
    if not usb_only:
        _apply_bt(level, config)
    _report(level)
    return 0


def cmd_display(enabled, config):
    try:
        done = DisplayController(config).set_secondary_display(enabled)
    except (subprocess.SubprocessError, OSError) as e:
        print(f"Display switch failed: {e}", file=sys.stderr)
        return 1
    if done:
        print(f"Bottom screen ({config.secondary_output}) {'on' if enabled else 'off'}.")
    return 0


def _terminate(signum, frame):
    raise SystemExit(0)


def cmd_watch(config):
    signal.signal(signal.SIGTERM, _terminate)
    dispatcher = Dispatcher(config, PresenceDetector(config), DisplayController(config),
                            BrightnessStore(config.state_file))
    log.info("Watching for keyboard dock/undock (bottom screen %s)...", config.secondary_output)
    try:
        with closing(event_source(config)) as events:
            run(dispatcher, events, settle=config.event_settle)
    except KeyboardInterrupt:
        pass
    log.info("Watcher stopped.")
    return 0
