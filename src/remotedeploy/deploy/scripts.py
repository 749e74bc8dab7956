"""Installation of the bundled remote control scripts.

The PowerShell scripts ship inside the package. They are copied once per
process to a temp directory so that the helper can locate its siblings with
``$PSScriptRoot``. Hosting applications call ``install_control_scripts`` at
startup; the PowerShell backend falls back to calling it on first use.
"""

from __future__ import annotations

import tempfile
import threading
from dataclasses import dataclass
from importlib import resources
from pathlib import Path

from remotedeploy.lib.logging_config import get_logger

logger = get_logger(__name__)

SESSION_HELPER_SCRIPT = "RemotePSSessionHelper.ps1"
START_SERVER_SCRIPT = "StartServer.ps1"
STOP_SERVER_SCRIPT = "StopServer.ps1"

CONTROL_SCRIPTS: tuple[str, ...] = (
    SESSION_HELPER_SCRIPT,
    START_SERVER_SCRIPT,
    STOP_SERVER_SCRIPT,
)

_SCRIPTS_PACKAGE = "remotedeploy.deploy"
_SCRIPTS_DIRECTORY = "control_scripts"


@dataclass(frozen=True)
class ControlScripts:
    """On-disk locations of the installed control scripts."""

    directory: Path
    session_helper: Path


_lock = threading.Lock()
_installed: ControlScripts | None = None


def default_install_directory() -> Path:
    """Return the well-known temp directory the scripts are copied to."""
    return Path(tempfile.gettempdir()) / "remotedeploy"


def install_control_scripts(target_dir: Path | None = None) -> ControlScripts:
    """Copy the bundled control scripts to disk, once per process.

    Args:
        target_dir: Directory to copy into; defaults to
            ``default_install_directory()``. Ignored after the first call.

    Returns:
        Locations of the installed scripts
    """
    global _installed

    with _lock:
        if _installed is not None:
            return _installed

        directory = Path(target_dir) if target_dir else default_install_directory()
        directory.mkdir(parents=True, exist_ok=True)

        bundled = resources.files(_SCRIPTS_PACKAGE).joinpath(_SCRIPTS_DIRECTORY)
        for name in CONTROL_SCRIPTS:
            content = bundled.joinpath(name).read_bytes()
            (directory / name).write_bytes(content)
        logger.debug(f"Installed control scripts to {directory}")

        _installed = ControlScripts(
            directory=directory,
            session_helper=directory / SESSION_HELPER_SCRIPT,
        )
        return _installed


def reset_control_scripts() -> None:
    """Forget the cached installation so the next call copies again."""
    global _installed

    with _lock:
        _installed = None
