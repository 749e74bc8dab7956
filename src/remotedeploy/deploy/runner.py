"""Execution of remote start/stop control scripts.

A control script is run as a local child process which opens a session to
the target host. Its stdout and stderr are forwarded line by line to the
logger, tagged with the target host, while the caller blocks until the
script exits or its time budget runs out.
"""

from __future__ import annotations

import logging
import subprocess  # nosec B404
import threading
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import IO

from remotedeploy.deploy.scripts import ControlScripts, install_control_scripts
from remotedeploy.lib.errors import ExecutionError
from remotedeploy.lib.logging_config import get_logger
from remotedeploy.models.deployment import (
    ENVIRONMENT_VARIABLE_SEPARATOR,
    RemoteDeploymentParameters,
    ServerAction,
)

logger = get_logger(__name__)

# Seconds to wait for the stream readers after the child exits
_READER_JOIN_TIMEOUT = 5.0

PASSWORD_ARGUMENT = "-accountPassword"

ScriptArguments = list[tuple[str, str]]


def format_environment_variables(environment_variables: Mapping[str, str]) -> str:
    """Join environment variables into the script's ``KEY=VALUE`` list.

    Pairs keep the mapping's order.

    Example:
        >>> format_environment_variables({"A": "1", "B": "2"})
        'A=1`,B=2'
    """
    return ENVIRONMENT_VARIABLE_SEPARATOR.join(
        f"{key}={value}" for key, value in environment_variables.items()
    )


def build_script_arguments(
    parameters: RemoteDeploymentParameters,
    executable_path: Path | str,
    action: ServerAction,
) -> ScriptArguments:
    """Return the ordered named arguments of a control script invocation."""
    server_type = parameters.server_type.value if parameters.server_type else ""
    return [
        ("-serverName", parameters.server_name),
        ("-accountName", parameters.server_account_name),
        (PASSWORD_ARGUMENT, parameters.account_password),
        ("-executablePath", str(executable_path)),
        ("-serverType", server_type),
        ("-serverAction", action.value),
        ("-applicationBaseUrl", parameters.application_base_uri_hint),
        (
            "-environmentVariables",
            format_environment_variables(parameters.environment_variables),
        ),
    ]


def _flatten(arguments: ScriptArguments) -> list[str]:
    flat: list[str] = []
    for name, value in arguments:
        flat.extend((name, value))
    return flat


def mask_command(command: Sequence[str]) -> str:
    """Render a command line for logs with the account password hidden."""
    shown = list(command)
    for index, part in enumerate(shown[:-1]):
        if part == PASSWORD_ARGUMENT:
            shown[index + 1] = "***"
    return " ".join(shown)


class RemoteExecutionBackend(ABC):
    """Turns control script arguments into a local command line."""

    @abstractmethod
    def build_command(self, arguments: ScriptArguments) -> list[str]:
        """Return the argv to launch for the given script arguments.

        Args:
            arguments: Ordered ``(name, value)`` pairs from
                ``build_script_arguments``

        Returns:
            Command line suitable for ``subprocess.Popen``
        """


class PowerShellBackend(RemoteExecutionBackend):
    """Runs the bundled PowerShell session helper."""

    def __init__(
        self,
        executable: str = "powershell.exe",
        scripts: ControlScripts | None = None,
    ) -> None:
        """Initialize the backend.

        Args:
            executable: PowerShell host to launch (``powershell.exe`` or ``pwsh``)
            scripts: Installed control scripts; installed on first use if omitted
        """
        self.executable = executable
        self._scripts = scripts

    @property
    def scripts(self) -> ControlScripts:
        """Installed control scripts used by this backend."""
        if self._scripts is None:
            self._scripts = install_control_scripts()
        return self._scripts

    def build_command(self, arguments: ScriptArguments) -> list[str]:
        return [
            self.executable,
            "-NoProfile",
            "-NonInteractive",
            "-ExecutionPolicy",
            "Bypass",
            "-File",
            str(self.scripts.session_helper),
            *_flatten(arguments),
        ]


class CommandBackend(RemoteExecutionBackend):
    """Runs an arbitrary command followed by the named script arguments.

    Useful for SSH wrappers or agent-based runners that accept the same
    ``-name value`` contract as the PowerShell helper.
    """

    def __init__(self, command: Sequence[str]) -> None:
        if not command:
            raise ValueError("command must not be empty")
        self.command = list(command)

    def build_command(self, arguments: ScriptArguments) -> list[str]:
        return [*self.command, *_flatten(arguments)]


@dataclass
class ScriptResult:
    """Outcome of a control script that exited successfully."""

    action: ServerAction
    exit_code: int


class RemoteCommandRunner:
    """Runs start/stop control scripts against a remote host.

    Example:
        >>> runner = RemoteCommandRunner()
        >>> runner.run(ServerAction.START, parameters, staged.executable_path)
    """

    def __init__(
        self,
        backend: RemoteExecutionBackend | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        """Initialize the runner.

        Args:
            backend: Builds the command line; defaults to ``PowerShellBackend``
            log: Logger receiving the script output; defaults to this module's
        """
        self.backend = backend or PowerShellBackend()
        self.log = log or logger

    def run(
        self,
        action: ServerAction,
        parameters: RemoteDeploymentParameters,
        executable_path: Path | str,
    ) -> ScriptResult:
        """Run a control script and wait for it to finish.

        Args:
            action: Start or stop the server
            parameters: Deployment the script acts on
            executable_path: Full path of the staged executable

        Returns:
            ScriptResult for a zero exit code

        Raises:
            ExecutionError: If the script cannot be launched, exits non-zero,
                or does not exit within ``parameters.script_timeout`` seconds
        """
        server_name = parameters.server_name
        arguments = build_script_arguments(parameters, executable_path, action)
        command = self.backend.build_command(arguments)
        self.log.debug(f"Running control script: {mask_command(command)}")

        try:
            process = subprocess.Popen(  # noqa: S603  # nosec B603
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as exc:
            raise ExecutionError(
                server_name=server_name,
                action=action.value,
                message=(
                    f"Failed to launch the script for '{server_name}': {exc}"
                ),
            ) from exc

        emit_lock = threading.Lock()
        readers = [
            self._start_reader(process.stdout, logging.INFO, server_name, emit_lock),
            self._start_reader(
                process.stderr, logging.WARNING, server_name, emit_lock
            ),
        ]

        try:
            exit_code = process.wait(timeout=parameters.script_timeout)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()
            self._join(readers)
            raise ExecutionError(
                server_name=server_name,
                action=action.value,
                message=(
                    f"Timed out after {parameters.script_timeout:g}s executing"
                    f" the script on '{server_name}'."
                ),
                timed_out=True,
            ) from None

        self._join(readers)

        if exit_code != 0:
            raise ExecutionError(
                server_name=server_name,
                action=action.value,
                message=(
                    f"Failed to execute the script on '{server_name}'"
                    f" (exit code {exit_code})."
                ),
                exit_code=exit_code,
            )

        return ScriptResult(action=action, exit_code=exit_code)

    def _start_reader(
        self,
        stream: IO[str] | None,
        level: int,
        server_name: str,
        emit_lock: threading.Lock,
    ) -> threading.Thread:
        thread = threading.Thread(
            target=self._forward,
            args=(stream, level, server_name, emit_lock),
            daemon=True,
        )
        thread.start()
        return thread

    def _forward(
        self,
        stream: IO[str] | None,
        level: int,
        server_name: str,
        emit_lock: threading.Lock,
    ) -> None:
        if stream is None:
            return
        with stream:
            for raw_line in stream:
                line = raw_line.rstrip("\r\n")
                if not line:
                    continue
                with emit_lock:
                    self.log.log(level, f"[{server_name}]: {line}")

    @staticmethod
    def _join(readers: list[threading.Thread]) -> None:
        for reader in readers:
            reader.join(timeout=_READER_JOIN_TIMEOUT)
