"""
Zenbook Duo — turn the bottom screen on and off.

Whichever display tool is installed does the work; KDE's kscreen-doctor
is preferred over gnome-monitor-config.
"""

import logging
import shutil
import subprocess

log = logging.getLogger(__name__)


class DisplayBackend:
    tool = "?"

    def available(self):
        return shutil.which(self.tool) is not None

    def _run(self, args):
        subprocess.run([self.tool] + args, check=True,
                       stdout=subprocess.DEVNULL, timeout=15)

    def enable(self, output, below=None):
        raise NotImplementedError

    def disable(self, output):
        raise NotImplementedError


class KScreenDoctor(DisplayBackend):
    tool = "kscreen-doctor"

    def enable(self, output, below=None):
        # KScreen restores the previous placement itself
        self._run([f"output.{output}.enable"])

    def disable(self, output):
        self._run([f"output.{output}.disable"])


class GnomeMonitorConfig(DisplayBackend):
    tool = "gnome-monitor-config"

    def enable(self, output, below=None):
        args = ["set", "--on", output]
        if below:
            args += ["--below", below]
        self._run(args)

    def disable(self, output):
        self._run(["set", "--off", output])


def default_backends():
    return [KScreenDoctor(), GnomeMonitorConfig()]


class DisplayController:
    def __init__(self, config, backends=None):
        self.config = config
        self.backends = default_backends() if backends is None else list(backends)

    def backend(self):
        """First installed backend, or None."""
        for b in self.backends:
            if b.available():
                return b
        return None

    def set_secondary_display(self, enabled):
        """Enable (below the primary) or disable the secondary output.

        Returns False without raising when no display tool is installed.
        Tool failures propagate as CalledProcessError.
        """
        b = self.backend()
        if b is None:
            tools = "|".join(x.tool for x in self.backends)
            log.warning("No supported display tool (%s) found.", tools)
            return False
        out = self.config.secondary_output
        if enabled:
            b.enable(out, below=self.config.primary_output)
        else:
            b.disable(out)
        log.debug("%s: %s %s", b.tool, "enabled" if enabled else "disabled", out)
        return True
