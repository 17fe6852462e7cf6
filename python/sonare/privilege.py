"""
Self-relaunch under sudo for production mode.

Binding ports 80 and 443 needs root. When production mode starts without it,
the same command line is re-run under sudo with the terminal passed through,
and the unprivileged parent exits with the child's status once it finishes.
"""

import os
import subprocess
import sys
from typing import Protocol, Sequence

from shared.logging import get_logger
from .modes import RunMode

logger = get_logger(__name__)


class Relauncher(Protocol):
    def relaunch(self, argv: Sequence[str]) -> int:
        """Run ``argv`` with elevated privileges and return its exit code."""
        ...


class SudoRelauncher:
    """Relauncher backed by ``sudo``."""

    def __init__(self, command: Sequence[str] = ("sudo",)):
        self.command = list(command)

    def relaunch(self, argv: Sequence[str]) -> int:
        """Raises OSError when the elevation command cannot be started."""
        # stdin/stdout/stderr are inherited so sudo can prompt
        completed = subprocess.run([*self.command, *argv])
        return completed.returncode


def has_bind_privilege() -> bool:
    """True when this process may bind ports below 1024."""
    geteuid = getattr(os, "geteuid", None)
    if geteuid is None:
        # No privileged-port concept to escalate for on this platform
        return True
    return geteuid() == 0


def needs_relaunch(mode: RunMode, privileged: bool) -> bool:
    return mode is RunMode.PRODUCTION and not privileged


def relaunch_argv() -> list[str]:
    """The current interpreter invocation, arguments included."""
    return [sys.executable, *sys.orig_argv[1:]]


def relaunch_elevated(relauncher: Relauncher, argv: Sequence[str]) -> int:
    """Hand the run over to an elevated copy of this process.

    Returns the child's exit code. Failure to start the child is fatal.
    """
    logger.info("PRODUCTION MODE REQUIRES ROOT PRIVILEGES (Binding ports 80/443).")
    logger.info("Attempting to relaunch with sudo...")
    try:
        code = relauncher.relaunch(argv)
    except OSError as e:
        logger.critical(f"Failed to run with sudo: {e}")
        sys.exit(1)
    if code != 0:
        logger.error(f"Elevated process exited with status {code}")
    return code
