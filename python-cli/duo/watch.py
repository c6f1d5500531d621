"""
Zenbook Duo — dock/undock watcher.

Every USB event triggers a presence check. When the answer differs from
the last one, the bottom screen and the backlight are switched over:

    attached   bottom screen off, stored level applied over USB
    detached   bottom screen on (below the top one), wait for the
               Bluetooth link to settle, stored level applied over GATT

Repeated events with the same answer do nothing. Failures inside a tick are
logged and the watcher keeps going.
"""

import enum
import logging
import re
import shutil
import subprocess
import time
from dataclasses import dataclass

from duo.bluetooth import set_bt_brightness
from duo.device import set_usb_brightness

log = logging.getLogger(__name__)

UDEVADM = ["udevadm", "monitor", "--udev", "--subsystem-match=usb"]
_UDEV_EVENT = re.compile(r"^UDEV\s+\[")


class Presence(enum.Enum):
    UNKNOWN = "unknown"
    ATTACHED = "attached"
    DETACHED = "detached"


@dataclass(frozen=True)
class WatchState:
    last: Presence = Presence.UNKNOWN


class Dispatcher:
    def __init__(self, config, detector, display, store,
                 usb_driver=set_usb_brightness, bt_driver=set_bt_brightness,
                 sleep=time.sleep):
        self.config = config
        self.detector = detector
        self.display = display
        self.store = store
        self.usb_driver = usb_driver
        self.bt_driver = bt_driver
        self.sleep = sleep

    def tick(self, state):
        """Check presence once and act on a change. Returns the new state."""
        docked = self.detector.is_docked()
        return self.observe(state, Presence.ATTACHED if docked else Presence.DETACHED)

    def observe(self, state, current):
        if current is Presence.UNKNOWN or current == state.last:
            return state
        if current is Presence.ATTACHED:
            log.info("Keyboard ATTACHED -> disabling bottom screen (%s)",
                     self.config.secondary_output)
            self._attached()
        else:
            log.info("Keyboard DETACHED -> enabling bottom screen (%s)",
                     self.config.secondary_output)
            self._detached()
        return WatchState(current)

    def _display(self, enabled):
        try:
            self.display.set_secondary_display(enabled)
        except Exception as e:
            log.error("Display switch failed: %s", e)

    def _attached(self):
        self._display(False)
        try:
            level = self.store.read()
            self.usb_driver(level, self.config)
        except Exception as e:
            log.error("USB brightness failed: %s", e)

    def _detached(self):
        self._display(True)
        self.sleep(self.config.bt_settle)
        try:
            level = self.store.read()
            self.bt_driver(level, self.config, timeout=self.config.watch_bt_timeout)
        except Exception as e:
            log.error("Bluetooth brightness failed: %s", e)


def usb_events():
    """Yield one line per udev USB event until udevadm exits."""
    p = subprocess.Popen(UDEVADM, stdout=subprocess.PIPE, stderr=subprocess.DEVNULL,
                         text=True, bufsize=1)
    try:
        for line in p.stdout:
            if _UDEV_EVENT.match(line):
                yield line.strip()
    finally:
        p.terminate()
        try:
            p.wait(timeout=2)
        except subprocess.TimeoutExpired:
            p.kill()
            p.wait()


def poll_events(interval, sleep=time.sleep):
    while True:
        sleep(interval)
        yield "poll"


def event_source(config):
    if shutil.which("udevadm"):
        return usb_events()
    log.warning("udevadm not found, polling every %.1fs instead.", config.poll_interval)
    return poll_events(config.poll_interval)


def _safe_tick(dispatcher, state):
    try:
        return dispatcher.tick(state)
    except Exception:
        log.exception("Watcher tick failed")
        return state


def run(dispatcher, events, settle=0.5, sleep=time.sleep, state=None):
    """Initial check, then one debounced check per event. Returns the final state."""
    state = WatchState() if state is None else state
    state = _safe_tick(dispatcher, state)
    for _ in events:
        sleep(settle)
        state = _safe_tick(dispatcher, state)
    return state
