"""Build publishers producing the local application output to deploy."""

from __future__ import annotations

import shutil
import subprocess  # nosec B404
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

from remotedeploy.lib.errors import ArtifactNotFoundError, ConfigError, DeploymentError
from remotedeploy.lib.logging_config import get_logger
from remotedeploy.models.deployment import RemoteDeploymentParameters

logger = get_logger(__name__)


class BuildPublisher(ABC):
    """Produces the local directory holding the published application."""

    @abstractmethod
    def publish(self, parameters: RemoteDeploymentParameters) -> Path:
        """Publish the application and return the output directory.

        Args:
            parameters: Deployment being prepared

        Returns:
            Local directory containing the published output

        Raises:
            DeploymentError: If publishing fails
        """


class PrebuiltPublisher(BuildPublisher):
    """Uses output that was published before the deployment started."""

    def publish(self, parameters: RemoteDeploymentParameters) -> Path:
        if not parameters.published_application_root_path:
            raise ConfigError(
                field="published_application_root_path",
                message="A published application root path is required.",
            )
        published = Path(parameters.published_application_root_path)
        if not published.is_dir():
            raise ArtifactNotFoundError(str(published))
        return published


class DotnetPublisher(BuildPublisher):
    """Publishes the application with ``dotnet publish`` into a temp folder."""

    def __init__(self, dotnet: str = "dotnet") -> None:
        self.dotnet = dotnet

    def build_command(
        self, parameters: RemoteDeploymentParameters, output_dir: Path
    ) -> list[str]:
        """Return the ``dotnet publish`` command line."""
        command = [
            self.dotnet,
            "publish",
            str(parameters.application_path),
            "--output",
            str(output_dir),
            "--configuration",
            parameters.configuration,
        ]
        if parameters.target_framework:
            command.extend(["--framework", parameters.target_framework])
        return command

    def publish(self, parameters: RemoteDeploymentParameters) -> Path:
        if not parameters.application_path:
            raise ConfigError(
                field="application_path",
                message=(
                    "An application path is required to publish the application"
                    " when no published application root path is given."
                ),
            )

        output_dir = Path(tempfile.mkdtemp(prefix="remotedeploy-publish-"))
        command = self.build_command(parameters, output_dir)
        logger.info(f"Publishing '{parameters.application_path}' to {output_dir}")

        try:
            result = subprocess.run(  # noqa: S603  # nosec B603
                command,
                capture_output=True,
                text=True,
            )
        except OSError as exc:
            shutil.rmtree(output_dir, ignore_errors=True)
            raise DeploymentError(
                operation="publish",
                message=f"Failed to run '{self.dotnet}': {exc}",
            ) from exc

        if result.returncode != 0:
            shutil.rmtree(output_dir, ignore_errors=True)
            detail = (result.stderr or result.stdout).strip()
            raise DeploymentError(
                operation="publish",
                message=f"dotnet publish exited with code {result.returncode}: {detail}",
            )
        return output_dir


def resolve_publisher(parameters: RemoteDeploymentParameters) -> BuildPublisher:
    """Pick the publisher matching the deployment parameters."""
    if parameters.published_application_root_path:
        return PrebuiltPublisher()
    return DotnetPublisher()
