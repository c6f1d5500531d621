"""Tests for display backend selection and commands."""

import subprocess

import pytest

from duo.display import DisplayController, GnomeMonitorConfig, KScreenDoctor


@pytest.fixture
def runs(monkeypatch):
    calls = []

    def run(cmd, check=False, stdout=None, timeout=None):
        calls.append(cmd)
        return subprocess.CompletedProcess(cmd, 0)

    monkeypatch.setattr("duo.display.subprocess.run", run)
    return calls


def _installed(monkeypatch, *tools):
    monkeypatch.setattr("duo.display.shutil.which",
                        lambda name: f"/usr/bin/{name}" if name in tools else None)


def test_prefers_kscreen_doctor(monkeypatch, runs, config):
    _installed(monkeypatch, "kscreen-doctor", "gnome-monitor-config")
    ctl = DisplayController(config)
    assert isinstance(ctl.backend(), KScreenDoctor)
    assert ctl.set_secondary_display(False) is True
    assert ctl.set_secondary_display(True) is True
    assert runs == [["kscreen-doctor", "output.eDP-2.disable"],
                    ["kscreen-doctor", "output.eDP-2.enable"]]


def test_gnome_enable_places_below_primary(monkeypatch, runs, config):
    _installed(monkeypatch, "gnome-monitor-config")
    ctl = DisplayController(config)
    assert isinstance(ctl.backend(), GnomeMonitorConfig)
    ctl.set_secondary_display(True)
    ctl.set_secondary_display(False)
    assert runs == [["gnome-monitor-config", "set", "--on", "eDP-2", "--below", "eDP-1"],
                    ["gnome-monitor-config", "set", "--off", "eDP-2"]]


def test_no_tool_is_a_warning(monkeypatch, runs, config, caplog):
    _installed(monkeypatch)
    assert DisplayController(config).set_secondary_display(True) is False
    assert runs == []
    assert "No supported display tool" in caplog.text


def test_tool_failure_propagates(monkeypatch, config):
    _installed(monkeypatch, "kscreen-doctor")

    def run(cmd, **kw):
        raise subprocess.CalledProcessError(1, cmd)

    monkeypatch.setattr("duo.display.subprocess.run", run)
    with pytest.raises(subprocess.CalledProcessError):
        DisplayController(config).set_secondary_display(False)
