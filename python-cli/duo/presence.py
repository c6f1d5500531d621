"""
Zenbook Duo — is the keyboard docked (connected over USB)?

Sources are tried in order. Each answers True/False when it could look, or
None when it can't (tool missing, no permission, wrong OS), in which case
the next one gets asked.
"""

import glob
import logging
import os
import shutil
import subprocess

log = logging.getLogger(__name__)

SYSFS_USB = "/sys/bus/usb/devices"


def _read_id(path):
    with open(path, "r") as f:
        return int(f.read().strip(), 16)


class PresenceSource:
    name = "?"

    def probe(self, vendor, products):
        """Return True/False if conclusive, None to defer to the next source."""
        raise NotImplementedError


class SysfsSource(PresenceSource):
    """Walk the kernel's USB device descriptors. No external process."""

    name = "sysfs"

    def __init__(self, root=SYSFS_USB):
        self.root = root

    def probe(self, vendor, products):
        """Unreadable descriptors make a miss inconclusive."""
        if not os.path.isdir(self.root):
            return None
        unreadable = 0
        for d in sorted(glob.glob(os.path.join(self.root, "*"))):
            vpath = os.path.join(d, "idVendor")
            ppath = os.path.join(d, "idProduct")
            if not (os.path.isfile(vpath) and os.path.isfile(ppath)):
                continue
            try:
                vid, pid = _read_id(vpath), _read_id(ppath)
            except OSError as e:
                log.debug("Cannot read %s: %s", d, e)
                unreadable += 1
                continue
            except ValueError:
                continue
            if vid == vendor and pid in products:
                return True
        return None if unreadable else False


class HidSource(PresenceSource):
    """hidapi enumeration; works where sysfs doesn't (macOS, sandboxes)."""

    name = "hidapi"

    def probe(self, vendor, products):
        try:
            import hid
        except ImportError:
            return None
        try:
            for pid in products:
                if hid.enumerate(vendor, pid):
                    return True
        except (OSError, IOError) as e:
            log.debug("hid.enumerate failed: %s", e)
            return None
        return False


class LsusbSource(PresenceSource):
    """Last resort: ask ``lsusb -d VID:PID``."""

    name = "lsusb"

    def __init__(self, timeout=5):
        self.timeout = timeout

    def probe(self, vendor, products):
        if shutil.which("lsusb") is None:
            return None
        for pid in products:
            r = subprocess.run(["lsusb", "-d", f"{vendor:04x}:{pid:04x}"],
                               stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL,
                               timeout=self.timeout)
            if r.returncode == 0:
                return True
        return False


def default_sources():
    return [SysfsSource(), HidSource(), LsusbSource()]


class PresenceDetector:
    def __init__(self, config, sources=None):
        self.config = config
        self.sources = default_sources() if sources is None else list(sources)
        self.last_source = None

    def is_docked(self):
        """True if the keyboard is on USB. Never raises."""
        self.last_source = None
        for src in self.sources:
            try:
                found = src.probe(self.config.vendor_id, self.config.product_ids)
            except Exception as e:
                log.debug("Presence source %s failed: %s", src.name, e)
                continue
            if found is None:
                continue
            self.last_source = src.name
            return bool(found)
        return False
