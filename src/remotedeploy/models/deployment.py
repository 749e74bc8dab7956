"""Pydantic models for remote deployments.

This module defines the deployment request accepted by the remote deployer,
the record of where a deployment was staged, and the handle returned to the
caller once the application is running.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    field_validator,
)

DEFAULT_SCRIPT_TIMEOUT = 60  # seconds

# Joins KEY=VALUE pairs handed to the control script; must not appear in either
ENVIRONMENT_VARIABLE_SEPARATOR = "`,"


class ServerType(str, Enum):
    """Server runtimes known to the test deployment framework."""

    IIS_EXPRESS = "IISExpress"
    IIS = "IIS"
    WEB_LISTENER = "WebListener"
    KESTREL = "Kestrel"
    NGINX = "Nginx"

    @classmethod
    def _missing_(cls, value: object) -> ServerType | None:
        if isinstance(value, str):
            lowered = value.lower()
            for member in cls:
                if member.value.lower() == lowered or member.name.lower() == lowered:
                    return member
        return None


# Runtimes the remote control scripts know how to start and stop
REMOTE_SERVER_TYPES: tuple[ServerType, ...] = (
    ServerType.IIS,
    ServerType.KESTREL,
    ServerType.WEB_LISTENER,
)


class ServerAction(str, Enum):
    """Action token passed to the remote control script."""

    START = "StartServer"
    STOP = "StopServer"


class DeploymentLifecycle(str, Enum):
    """Lifecycle of a single deployer instance."""

    CREATED = "created"
    DEPLOYED = "deployed"
    DISPOSED = "disposed"


class RemoteDeploymentParameters(BaseModel):
    """Parameters describing one remote deployment.

    Only types are coerced here. Completeness and consistency are checked by
    ``remotedeploy.deploy.validator.validate_parameters`` so that a rejected
    request names exactly one field.

    Attributes:
        server_type: Server runtime to host the application
        server_name: Target host name
        server_account_name: Account used to open the remote session
        server_account_password: Secret for the account
        remote_server_file_share: Share reachable from this machine and the target
        remote_server_relative_executable_path: Executable relative to the published output
        application_base_uri_hint: Base URI the application listens on
        environment_variables: Variables set for the remote process
        published_application_root_path: Already published output, skips publishing
        application_path: Project handed to the build publisher
        target_framework: Framework passed to the build publisher
        configuration: Build configuration passed to the build publisher
        script_timeout: Seconds to wait for a control script to exit
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    server_type: ServerType | None = Field(
        default=None, description="Server runtime kind"
    )
    server_name: str = Field(default="", description="Target host name")
    server_account_name: str = Field(default="", description="Remote account name")
    server_account_password: SecretStr = Field(
        default=SecretStr(""), description="Remote account password"
    )
    remote_server_file_share: str = Field(
        default="", description="Staging root reachable from both machines"
    )
    remote_server_relative_executable_path: str = Field(
        default="", description="Executable path relative to the staged folder"
    )
    application_base_uri_hint: str = Field(
        default="", description="Base URI the application binds to"
    )
    environment_variables: dict[str, str] = Field(
        default_factory=dict, description="Environment for the remote process"
    )
    published_application_root_path: str | None = Field(
        default=None, description="Local published output, overrides publishing"
    )
    application_path: str | None = Field(
        default=None, description="Project path for the build publisher"
    )
    target_framework: str | None = Field(
        default=None, description="Target framework for the build publisher"
    )
    configuration: str = Field(
        default="Release", description="Build configuration for the publisher"
    )
    script_timeout: float = Field(
        default=DEFAULT_SCRIPT_TIMEOUT,
        gt=0,
        description="Seconds to wait for the control script",
    )

    @field_validator("environment_variables", mode="before")
    @classmethod
    def coerce_environment_values(cls, v: Any) -> Any:
        """Render scalar YAML values (ports, flags) as strings."""
        if isinstance(v, dict):
            return {
                str(key): "" if value is None else str(value)
                for key, value in v.items()
            }
        return v

    @property
    def account_password(self) -> str:
        """Return the plain account password."""
        return self.server_account_password.get_secret_value()


@dataclass(frozen=True)
class StagedDeployment:
    """Location of a deployment copied to the file share.

    Attributes:
        folder_id: Unique folder name generated for this deployment
        deployed_folder_path: File share path holding the copied output
        executable_path: Full path of the executable inside the deployed folder
    """

    folder_id: str
    deployed_folder_path: Path
    executable_path: Path


class DeploymentResult(BaseModel):
    """Handle returned once the application has been started remotely."""

    model_config = ConfigDict(frozen=True)

    application_base_uri: str = Field(
        ..., description="Base URI the application is reachable at"
    )
    deployment_parameters: RemoteDeploymentParameters = Field(
        ..., description="Parameters the deployment was created from"
    )


@dataclass
class CleanupResult:
    """Outcome of a best-effort teardown.

    Attributes:
        errors: One message per cleanup step that failed
    """

    errors: list[str]

    @property
    def success(self) -> bool:
        """Whether every cleanup step succeeded."""
        return not self.errors
