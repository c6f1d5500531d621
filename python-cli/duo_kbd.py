#!/usr/bin/env python3
# /// script
# dependencies = ["hid>=1.0.6", "pyusb>=1.2.1"]
# ///
"""
Zenbook Duo Keyboard — dock watcher and backlight control.

Switches the bottom screen when the detachable keyboard is docked or
undocked, and sets its backlight over USB HID (docked) or Bluetooth GATT
(undocked).

Usage:
    uv run duo_kbd.py <command>

Commands:
    status                   Show dock state, stored level, display tool
    usb <0-3>                Set backlight over USB only
    bt <0-3>                 Set backlight over Bluetooth only
    cycle [--policy step]    Toggle off/max (or step 0-3) on both transports
    set <0-3> | max | off    Store and apply a level
    display <on|off>         Switch the bottom screen
    watch                    Follow dock/undock events
"""

import sys
from duo.cli import main

if __name__ == "__main__":
    sys.exit(main())
