"""
Zenbook Duo — persisted brightness level shared by every command.

The state file holds a single ASCII digit 0–3. Anything else (missing file,
garbage, out-of-range) reads as 0 and the file is rewritten to 0. Every
read-modify-write runs under an exclusive flock on ``<state>.lock``; the
lock is released before any transport call.
"""

import fcntl
import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path

from duo.protocol import LEVEL_MAX, _check_level

log = logging.getLogger(__name__)

POLICIES = ("toggle", "step")


def next_level(level, policy="toggle"):
    """Next level for the cycle command.

    toggle: 0 -> 3, anything else -> 0
    step:   0 -> 1 -> 2 -> 3 -> 0
    """
    _check_level(level)
    if policy == "toggle":
        return LEVEL_MAX if level == 0 else 0
    if policy == "step":
        return (level + 1) % (LEVEL_MAX + 1)
    raise ValueError(f"unknown cycle policy {policy!r} (use one of {', '.join(POLICIES)})")


def _parse(text):
    # a lone digit, optionally newline-terminated
    if text in ("0", "1", "2", "3", "0\n", "1\n", "2\n", "3\n"):
        return int(text[0])
    return None


class _Txn:
    """Handle yielded by BrightnessStore.transaction()."""

    def __init__(self, level):
        self.level = level
        self.new = None

    def set(self, level):
        self.new = _check_level(level)


class BrightnessStore:
    def __init__(self, path):
        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + ".lock")

    def __repr__(self):
        return f"BrightnessStore({str(self.path)!r})"

    def _load(self):
        try:
            # newline="" keeps a stray \r visible to _parse
            with open(self.path, "r", encoding="ascii", errors="replace", newline="") as f:
                return _parse(f.read())
        except FileNotFoundError:
            return None

    def _write(self, level):
        fd, tmp = tempfile.mkstemp(prefix=self.path.name + ".", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="ascii") as f:
                f.write(f"{_check_level(level)}\n")
            os.replace(tmp, self.path)
        except BaseException:
            try:
                os.unlink(tmp)
            except FileNotFoundError:
                pass
            raise

    @contextmanager
    def locked(self):
        """Hold the exclusive state lock for the duration of the block."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.lock_path, "a") as lock:
            fcntl.flock(lock.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock.fileno(), fcntl.LOCK_UN)

    def _load_or_repair(self):
        # caller holds the lock
        level = self._load()
        if level is None:
            if self.path.exists():
                log.debug("State file %s is corrupt, resetting to 0", self.path)
            self._write(0)
            level = 0
        return level

    def read(self):
        """Current level. Lock-free unless the file needs repairing."""
        level = self._load()
        if level is not None:
            return level
        with self.locked():
            return self._load_or_repair()

    @contextmanager
    def transaction(self):
        """Locked read-modify-write.

        Yields a handle whose ``level`` is the validated current value;
        call ``set()`` on it to store a new one when the block exits.
        Nothing is written if the block raises.
        """
        with self.locked():
            txn = _Txn(self._load_or_repair())
            yield txn
            if txn.new is not None and txn.new != txn.level:
                self._write(txn.new)

    def update(self, fn):
        """Apply fn to the stored level under the lock. Returns (old, new)."""
        with self.transaction() as txn:
            txn.set(fn(txn.level))
        return txn.level, txn.new

    def set(self, level):
        _check_level(level)
        return self.update(lambda _: level)[1]
