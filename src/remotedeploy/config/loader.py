"""Configuration loader for remote deployments.

Reads a YAML file describing a deployment and turns it into
``RemoteDeploymentParameters``. The parameters may sit at the document root
or under a ``deployment:`` key.

Value precedence (highest to lowest):
1. ``REMOTEDEPLOY_*`` environment variables
2. The YAML file (after ``${VAR}`` substitution)
"""

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from remotedeploy.config.env_loader import load_env_file, substitute_env_vars
from remotedeploy.config.validator import first_error_field, flatten_pydantic_errors
from remotedeploy.lib.errors import ConfigError, FileNotFoundError
from remotedeploy.models.deployment import RemoteDeploymentParameters

logger = logging.getLogger(__name__)

# Environment variable to field name mapping
ENV_VAR_MAP = {
    "server_name": "REMOTEDEPLOY_SERVER_NAME",
    "server_account_name": "REMOTEDEPLOY_ACCOUNT_NAME",
    "server_account_password": "REMOTEDEPLOY_ACCOUNT_PASSWORD",
    "remote_server_file_share": "REMOTEDEPLOY_FILE_SHARE",
}

# Fields holding local paths, resolved relative to the configuration file
_LOCAL_PATH_FIELDS = ("published_application_root_path", "application_path")

DEPLOYMENT_SECTION = "deployment"


class ConfigLoader:
    """Loads and validates deployment configuration from YAML files.

    This class handles:
    - Loading a ``.env`` file next to the configuration
    - Environment variable substitution
    - Environment variable overrides for host and credentials
    - Resolving local paths relative to the configuration file
    - Converting validation errors into a ``ConfigError``
    """

    def __init__(self, env: Mapping[str, str] | None = None) -> None:
        """Initialize the loader.

        Args:
            env: Environment used for overrides; defaults to ``os.environ``
        """
        self._env = env

    def parse_yaml(self, file_path: str) -> dict[str, Any]:
        """Parse a YAML file with environment variable substitution.

        Args:
            file_path: Path to the YAML file to parse

        Returns:
            Parsed dictionary, empty if the file is empty

        Raises:
            FileNotFoundError: If the file does not exist
            ConfigError: If YAML parsing fails or a variable is not set
        """
        path = Path(file_path)

        try:
            raw_text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise FileNotFoundError(
                file_path,
                f"Configuration file not found at {file_path}. "
                f"Please ensure the file exists at this path.",
            ) from e

        try:
            content = yaml.safe_load(substitute_env_vars(raw_text))
        except yaml.YAMLError as e:
            raise ConfigError(
                "yaml_parse",
                f"Failed to parse YAML file {file_path}: {str(e)}",
            ) from e

        if content is None:
            return {}
        if not isinstance(content, dict):
            raise ConfigError(
                "yaml_parse",
                f"Expected a mapping at the top of {file_path}",
            )
        return content

    def load_deployment_yaml(self, file_path: str) -> RemoteDeploymentParameters:
        """Load deployment parameters from a YAML file.

        Args:
            file_path: Path to the deployment YAML file

        Returns:
            RemoteDeploymentParameters built from the file

        Raises:
            FileNotFoundError: If the file does not exist
            ConfigError: If the file is invalid
        """
        path = Path(file_path).resolve()
        load_env_file(path.parent / ".env")

        content = self.parse_yaml(str(path))
        section = content.get(DEPLOYMENT_SECTION, content)
        if not isinstance(section, dict):
            raise ConfigError(
                DEPLOYMENT_SECTION,
                f"The '{DEPLOYMENT_SECTION}' section must be a mapping",
            )

        data = dict(section)
        self._apply_env_overrides(data)
        self._resolve_local_paths(data, path.parent)

        return self.build_parameters(data)

    def build_parameters(self, data: dict[str, Any]) -> RemoteDeploymentParameters:
        """Validate a mapping against the deployment schema.

        Raises:
            ConfigError: Naming the first invalid field
        """
        try:
            return RemoteDeploymentParameters.model_validate(data)
        except PydanticValidationError as e:
            messages = flatten_pydantic_errors(e)
            raise ConfigError(first_error_field(e), "\n".join(messages)) from e

    def _apply_env_overrides(self, data: dict[str, Any]) -> None:
        env = self._env if self._env is not None else os.environ

        for field_name, env_var_name in ENV_VAR_MAP.items():
            value = env.get(env_var_name)
            if value:
                logger.debug(f"Using {env_var_name} for '{field_name}'")
                data[field_name] = value

    @staticmethod
    def _resolve_local_paths(data: dict[str, Any], base_dir: Path) -> None:
        for field_name in _LOCAL_PATH_FIELDS:
            value = data.get(field_name)
            if value and not Path(str(value)).is_absolute():
                data[field_name] = str(base_dir / str(value))
