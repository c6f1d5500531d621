"""
Zenbook Duo — USB device discovery and the HID SET_REPORT backlight transfer.
"""

import logging

from duo.errors import TransferError
from duo.protocol import REQ_SET_REPORT, REQTYPE_SET, USB_TIMEOUT_MS, WVALUE, _usb_report

log = logging.getLogger(__name__)


def _find_device(config):
    """Find the docked keyboard.

    Returns:
        (dev, pid) or (None, None) if not connected.
    """
    try:
        import usb.core
    except ImportError as e:
        raise TransferError(f"pyusb is not installed: {e}") from e

    for vid, pid in config.usb_ids:
        try:
            dev = usb.core.find(idVendor=vid, idProduct=pid)
        except usb.core.NoBackendError as e:
            raise TransferError(f"libusb backend not available: {e}") from e
        if dev is not None:
            return (dev, pid)
    return (None, None)


def list_usb_devices(config):
    """(vid, pid, bus, address) for every matching device on the bus."""
    try:
        import usb.core
    except ImportError:
        return []

    found = []
    for vid, pid in config.usb_ids:
        try:
            devs = usb.core.find(find_all=True, idVendor=vid, idProduct=pid)
        except usb.core.NoBackendError:
            return []
        for d in devs:
            found.append((vid, pid, d.bus, d.address))
    return found


def _send(dev, iface, report):
    return dev.ctrl_transfer(REQTYPE_SET, REQ_SET_REPORT, WVALUE, iface, report,
                             timeout=USB_TIMEOUT_MS)


def _send_detached(dev, iface, report):
    """Retry the transfer with the interface claimed from the kernel driver.

    The interface is released and the kernel driver reattached on every
    path; a keyboard left detached stops typing until it is re-plugged.
    """
    import usb.util
    from usb.core import USBError

    reattach = False
    try:
        if dev.is_kernel_driver_active(iface):
            log.info("Detaching kernel driver from interface %d.", iface)
            dev.detach_kernel_driver(iface)
            reattach = True
        usb.util.claim_interface(dev, iface)
        n = _send(dev, iface, report)
        log.info("Sent %d bytes (kernel driver detached).", n)
        return n
    except USBError as e:
        raise TransferError(f"control transfer failed again: {e}") from e
    finally:
        try:
            usb.util.release_interface(dev, iface)
        except USBError as e:
            log.warning("Failed to release interface: %s", e)
        if reattach:
            try:
                dev.attach_kernel_driver(iface)
                log.debug("Kernel driver reattached.")
            except USBError as e:
                log.warning("Failed to reattach kernel driver: %s", e)
                log.warning("The keyboard may not work until it is re-plugged.")


def set_usb_brightness(level, config):
    """Set the backlight over USB.

    Returns:
        True if the report was sent, False if the keyboard isn't docked.

    Raises:
        TransferError if the transfer fails with the kernel driver detached.
    """
    report = _usb_report(level)
    dev, pid = _find_device(config)
    if dev is None:
        log.info("Keyboard %04x:%s not found via USB (it may be detached).",
                 config.vendor_id, "/".join(f"{p:04x}" for p in config.product_ids))
        return False

    import usb.util
    from usb.core import USBError

    iface = config.usb_interface
    try:
        try:
            n = _send(dev, iface, report)
            log.info("Sent %d bytes (kernel driver attached).", n)
        except USBError as e:
            log.warning("Control transfer failed (is kernel driver active?): %s", e)
            _send_detached(dev, iface, report)
    finally:
        usb.util.dispose_resources(dev)
    return True
