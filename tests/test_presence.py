"""Tests for dock detection and its source fallback order."""

import os
import sys
import types

import pytest

from duo import presence
from duo.presence import HidSource, LsusbSource, PresenceDetector, PresenceSource, SysfsSource


def _usb_dev(root, name, vid, pid):
    d = root / name
    d.mkdir(parents=True)
    (d / "idVendor").write_text(f"{vid}\n")
    (d / "idProduct").write_text(f"{pid}\n")


class Fixed(PresenceSource):
    def __init__(self, name, answer):
        self.name = name
        self.answer = answer
        self.asked = 0

    def probe(self, vendor, products):
        self.asked += 1
        if isinstance(self.answer, BaseException):
            raise self.answer
        return self.answer


class TestSysfsSource:

    def test_match(self, tmp_path):
        _usb_dev(tmp_path, "1-1", "046d", "c52b")
        _usb_dev(tmp_path, "3-2", "0b05", "1bf2")
        assert SysfsSource(str(tmp_path)).probe(0x0B05, (0x1BF2, 0x1B2C)) is True

    def test_second_product_id(self, tmp_path):
        _usb_dev(tmp_path, "3-2", "0b05", "1b2c")
        assert SysfsSource(str(tmp_path)).probe(0x0B05, (0x1BF2, 0x1B2C)) is True

    def test_no_match_is_conclusive(self, tmp_path):
        _usb_dev(tmp_path, "1-1", "0b05", "1234")
        (tmp_path / "usb1").mkdir()          # root hub dir without ids
        _usb_dev(tmp_path, "1-2", "zzzz", "1bf2")
        assert SysfsSource(str(tmp_path)).probe(0x0B05, (0x1BF2,)) is False

    def test_missing_tree_defers(self, tmp_path):
        assert SysfsSource(str(tmp_path / "nope")).probe(0x0B05, (0x1BF2,)) is None

    def test_unreadable_descriptor_defers(self, tmp_path, monkeypatch):
        _usb_dev(tmp_path, "1-1", "046d", "c52b")
        _usb_dev(tmp_path, "3-2", "0b05", "1bf2")
        real = presence._read_id

        def read_id(path):
            if os.path.basename(os.path.dirname(path)) == "3-2":
                raise PermissionError(13, "Permission denied", path)
            return real(path)

        monkeypatch.setattr(presence, "_read_id", read_id)
        assert SysfsSource(str(tmp_path)).probe(0x0B05, (0x1BF2,)) is None


class TestHidSource:

    def test_uses_hid_enumerate(self, monkeypatch):
        seen = []

        def enumerate(vid, pid):
            seen.append((vid, pid))
            return [{"path": b"x"}] if pid == 0x1B2C else []

        monkeypatch.setitem(sys.modules, "hid", types.SimpleNamespace(enumerate=enumerate))
        assert HidSource().probe(0x0B05, (0x1BF2, 0x1B2C)) is True
        assert seen == [(0x0B05, 0x1BF2), (0x0B05, 0x1B2C)]

    def test_enumerate_error_defers(self, monkeypatch):
        def enumerate(vid, pid):
            raise OSError("hidapi init failed")

        monkeypatch.setitem(sys.modules, "hid", types.SimpleNamespace(enumerate=enumerate))
        assert HidSource().probe(0x0B05, (0x1BF2,)) is None


class TestLsusbSource:

    def test_missing_tool_defers(self, monkeypatch):
        monkeypatch.setattr("duo.presence.shutil.which", lambda name: None)
        assert LsusbSource().probe(0x0B05, (0x1BF2,)) is None

    def test_filters_by_id(self, monkeypatch):
        cmds = []

        class Result:
            def __init__(self, code):
                self.returncode = code

        def run(cmd, **kw):
            cmds.append(cmd)
            return Result(0 if cmd[-1] == "0b05:1b2c" else 1)

        monkeypatch.setattr("duo.presence.shutil.which", lambda name: "/usr/bin/lsusb")
        monkeypatch.setattr("duo.presence.subprocess.run", run)
        assert LsusbSource().probe(0x0B05, (0x1BF2, 0x1B2C)) is True
        assert cmds == [["lsusb", "-d", "0b05:1bf2"], ["lsusb", "-d", "0b05:1b2c"]]


class TestPresenceDetector:

    def test_first_conclusive_answer_wins(self, config):
        a, b, c = Fixed("a", None), Fixed("b", False), Fixed("c", True)
        det = PresenceDetector(config, [a, b, c])
        assert det.is_docked() is False
        assert det.last_source == "b"
        assert (a.asked, b.asked, c.asked) == (1, 1, 0)

    def test_failing_source_falls_through(self, config):
        det = PresenceDetector(config, [Fixed("a", PermissionError("denied")), Fixed("b", True)])
        assert det.is_docked() is True
        assert det.last_source == "b"

    def test_unreadable_sysfs_falls_through_to_lsusb(self, config, tmp_path, monkeypatch):
        _usb_dev(tmp_path, "3-2", "0b05", "1bf2")

        def read_id(path):
            raise PermissionError(13, "Permission denied", path)

        monkeypatch.setattr(presence, "_read_id", read_id)
        lsusb = Fixed("lsusb", True)
        det = PresenceDetector(config, [SysfsSource(str(tmp_path)), lsusb])
        assert det.is_docked() is True
        assert det.last_source == "lsusb"

    @pytest.mark.parametrize("answers", [[], [None], [None, RuntimeError("x")]])
    def test_nothing_conclusive_means_not_docked(self, config, answers):
        det = PresenceDetector(config, [Fixed(str(i), a) for i, a in enumerate(answers)])
        assert det.is_docked() is False
        assert det.last_source is None
