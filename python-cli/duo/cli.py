"""
Zenbook Duo keyboard — CLI entry point (argparse).
"""

import argparse
import logging
import sys


def _level(text):
    from duo.protocol import parse_level
    try:
        return parse_level(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from None


def _setup_logging(verbose=False):
    """Log to stderr as "[LEVEL] message"."""
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    root.handlers = []
    sh = logging.StreamHandler()
    sh.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    root.addHandler(sh)


def build_parser():
    parser = argparse.ArgumentParser(
        prog="duo-kbd",
        description="Zenbook Duo keyboard — dock watcher and backlight control (USB HID / Bluetooth GATT)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command")

    # status
    sub.add_parser("status", help="Show dock state, stored level and display tool")

    # usb / bt
    p_usb = sub.add_parser("usb", help="Set backlight over USB only (docked)")
    p_usb.add_argument("level", type=_level, help="0=off 1=low 2=medium 3=max")

    p_bt = sub.add_parser("bt", help="Set backlight over Bluetooth only (undocked)")
    p_bt.add_argument("level", type=_level, help="0=off 1=low 2=medium 3=max")
    p_bt.add_argument("--timeout", type=float, help="Give up after this many seconds")

    # cycle
    p_cyc = sub.add_parser("cycle", help="Advance the stored level and apply it")
    p_cyc.add_argument("--policy", choices=["toggle", "step"], default="toggle",
                       help="toggle: off <-> max (default); step: 0 -> 1 -> 2 -> 3 -> 0")
    p_cyc.add_argument("--usb-only", action="store_true", help="Skip Bluetooth")

    # presets
    p_set = sub.add_parser("set", help="Store and apply a level")
    p_set.add_argument("level", type=_level, help="0=off 1=low 2=medium 3=max")
    p_set.add_argument("--usb-only", action="store_true", help="Skip Bluetooth")
    for name, text in (("max", "Backlight to max (3)"), ("off", "Backlight off (0)")):
        p = sub.add_parser(name, help=text)
        p.add_argument("--usb-only", action="store_true", help="Skip Bluetooth")

    # display
    p_disp = sub.add_parser("display", help="Switch the bottom screen")
    p_disp.add_argument("state", choices=["on", "off"])

    # watch
    sub.add_parser("watch", help="Follow dock/undock events (runs until stopped)")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    _setup_logging(args.verbose)

    from duo.commands import (cmd_bt, cmd_cycle, cmd_display, cmd_set,
                              cmd_status, cmd_usb, cmd_watch)
    from duo.config import Config
    from duo.errors import ConfigError

    try:
        config = Config.from_env()
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    if args.command == "status":
        return cmd_status(config)
    elif args.command == "usb":
        return cmd_usb(args.level, config)
    elif args.command == "bt":
        return cmd_bt(args.level, config, timeout=args.timeout)
    elif args.command == "cycle":
        return cmd_cycle(config, policy=args.policy, usb_only=args.usb_only)
    elif args.command == "set":
        return cmd_set(args.level, config, usb_only=args.usb_only)
    elif args.command == "max":
        return cmd_set(3, config, usb_only=args.usb_only)
    elif args.command == "off":
        return cmd_set(0, config, usb_only=args.usb_only)
    elif args.command == "display":
        return cmd_display(args.state == "on", config)
    elif args.command == "watch":
        return cmd_watch(config)

    return 0
