"""Environment variable helpers for configuration files.

Supports ``${VAR_NAME}`` references inside YAML text and loading ``.env``
files with python-dotenv.
"""

from __future__ import annotations

import os
import re
from pathlib import Path

from dotenv import dotenv_values

from remotedeploy.lib.errors import ConfigError

ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def substitute_env_vars(text: str) -> str:
    """Replace ``${VAR_NAME}`` references with environment values.

    Args:
        text: Raw configuration text

    Returns:
        Text with every reference substituted

    Raises:
        ConfigError: If a referenced variable is not set
    """

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        value = os.environ.get(name)
        if value is None:
            raise ConfigError(
                name,
                f"Environment variable '{name}' is referenced but not set",
            )
        return value

    return ENV_VAR_PATTERN.sub(_replace, text)


def load_env_file(path: Path | str, override: bool = False) -> dict[str, str]:
    """Load a ``.env`` file into ``os.environ``.

    Args:
        path: Path of the ``.env`` file; a missing file is ignored
        override: Replace variables that are already set

    Returns:
        The variables read from the file
    """
    env_path = Path(path)
    if not env_path.is_file():
        return {}

    loaded: dict[str, str] = {}
    for key, value in dotenv_values(env_path).items():
        if value is None:
            continue
        loaded[key] = value
        if override or key not in os.environ:
            os.environ[key] = value
    return loaded
