"""Validation of remote deployment parameters.

Runs before a deployer touches the filesystem or the network, so an invalid
request never reaches staging or script execution.
"""

from __future__ import annotations

from remotedeploy.lib.errors import ConfigError
from remotedeploy.models.deployment import (
    ENVIRONMENT_VARIABLE_SEPARATOR,
    REMOTE_SERVER_TYPES,
    RemoteDeploymentParameters,
)

_CREDENTIALS_HINT = (
    " Account credentials are required to enable creating a powershell"
    " session to the remote server."
)

# (field, extra explanation) checked in this order
_REQUIRED_FIELDS: tuple[tuple[str, str], ...] = (
    ("server_name", ""),
    ("server_account_name", _CREDENTIALS_HINT),
    ("server_account_password", _CREDENTIALS_HINT),
    (
        "remote_server_file_share",
        " A file share is required to copy the application's published output.",
    ),
    (
        "remote_server_relative_executable_path",
        " This is the name of the executable in the published output which"
        " needs to be executed on the remote server.",
    ),
    ("application_base_uri_hint", ""),
)


def _is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


def supported_server_types() -> str:
    """Return the remote-capable server types as a display string."""
    return ", ".join(server_type.value for server_type in REMOTE_SERVER_TYPES)


def validate_parameters(parameters: RemoteDeploymentParameters) -> None:
    """Check a deployment request for completeness and consistency.

    Args:
        parameters: Deployment request to check

    Raises:
        ConfigError: Naming the first field that is missing or invalid
    """
    if parameters.server_type not in REMOTE_SERVER_TYPES:
        shown = (
            parameters.server_type.value
            if parameters.server_type is not None
            else "None"
        )
        raise ConfigError(
            field="server_type",
            message=(
                f"Server type {shown} is not supported for remote deployment."
                f" Supported server types are {supported_server_types()}"
            ),
        )

    for field_name, hint in _REQUIRED_FIELDS:
        if field_name == "server_account_password":
            value: str | None = parameters.account_password
            # Never echo the secret back
            shown = "" if _is_blank(value) else "***"
        else:
            value = getattr(parameters, field_name)
            shown = value or ""
        if _is_blank(value):
            raise ConfigError(
                field=field_name,
                message=f"Invalid value '{shown}' for {field_name}.{hint}",
            )

    for key, value in parameters.environment_variables.items():
        if _is_blank(key):
            raise ConfigError(
                field="environment_variables",
                message="Environment variable names must not be empty.",
            )
        if (
            ENVIRONMENT_VARIABLE_SEPARATOR in key
            or ENVIRONMENT_VARIABLE_SEPARATOR in value
        ):
            raise ConfigError(
                field="environment_variables",
                message=(
                    f"Environment variable '{key}' contains the reserved"
                    f" separator '{ENVIRONMENT_VARIABLE_SEPARATOR}'."
                ),
            )
