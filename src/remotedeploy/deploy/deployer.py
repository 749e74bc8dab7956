"""Remote deployer: publish, stage, start, and tear down an application.

The deployer owns one deployment from construction to disposal:

    Created --deploy()--> Deployed --dispose()--> Disposed

``deploy()`` publishes the application locally, copies the output to a fresh
folder on the remote file share and runs the start script against it. Errors
propagate unchanged and nothing is rolled back; whatever was staged, even a
partial copy, is removed by ``dispose()``.

A ``dispose()`` issued while ``deploy()`` is running marks the deployer
disposed and waits. ``deploy()`` stops at its next step with
``DeployerDisposedError`` and the waiting ``dispose()`` then cleans up
everything it created.

``dispose()`` is best effort and never raises. It stops the server, deletes
the deployed folder and deletes the locally published folder, logging each
failure and moving on to the next step.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from pathlib import Path
from types import TracebackType

from remotedeploy.deploy.publisher import BuildPublisher, resolve_publisher
from remotedeploy.deploy.runner import RemoteCommandRunner
from remotedeploy.deploy.stager import ArtifactStager, remove_directory
from remotedeploy.deploy.validator import validate_parameters
from remotedeploy.lib.errors import DeployerDisposedError, DeploymentError
from remotedeploy.lib.logging_config import get_logger
from remotedeploy.models.deployment import (
    CleanupResult,
    DeploymentLifecycle,
    DeploymentResult,
    RemoteDeploymentParameters,
    ServerAction,
    StagedDeployment,
)

logger = get_logger(__name__)

CleanupStep = tuple[str, Callable[[], None]]


class RemoteDeployer:
    """Deploys a published application to a remote server for testing.

    The request is validated on construction, so an invalid request never
    reaches the file share or the remote host.

    Example:
        >>> with RemoteDeployer(parameters) as deployer:
        ...     result = deployer.deploy()
        ...     run_tests_against(result.application_base_uri)

    Attributes:
        parameters: The validated deployment request
    """

    def __init__(
        self,
        parameters: RemoteDeploymentParameters,
        publisher: BuildPublisher | None = None,
        runner: RemoteCommandRunner | None = None,
        stager: ArtifactStager | None = None,
    ) -> None:
        """Validate the request and prepare the deployer.

        Args:
            parameters: Deployment request
            publisher: Produces the local output; chosen from ``parameters``
                when omitted
            runner: Runs the remote control scripts
            stager: Copies the output to the file share

        Raises:
            ConfigError: If the request is incomplete or unsupported
        """
        validate_parameters(parameters)

        self.parameters = parameters
        self._publisher = publisher or resolve_publisher(parameters)
        self._runner = runner or RemoteCommandRunner()
        self._stager = stager or ArtifactStager()

        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._deploying = False
        self._state = DeploymentLifecycle.CREATED
        self._deploy_started = False
        self._published_path: Path | None = None
        self._staged: StagedDeployment | None = None

    @property
    def state(self) -> DeploymentLifecycle:
        """Current lifecycle state."""
        return self._state

    @property
    def staged_deployment(self) -> StagedDeployment | None:
        """Where the output was copied on the file share, once staged."""
        return self._staged

    @property
    def published_path(self) -> Path | None:
        """Local published output, once published."""
        return self._published_path

    def deploy(self) -> DeploymentResult:
        """Publish, stage and start the application on the remote server.

        Returns:
            DeploymentResult carrying the application's base URI

        Raises:
            DeployerDisposedError: If the deployer was disposed before or
                while deploying
            DeploymentError: If this deployer already attempted a deployment,
                or publishing fails
            ArtifactNotFoundError: If the published output is missing
            ExecutionError: If the start script fails or times out
        """
        with self._lock:
            if self._state is DeploymentLifecycle.DISPOSED:
                raise DeployerDisposedError()
            if self._deploy_started:
                raise DeploymentError(
                    operation="deploy",
                    message=(
                        "This deployer has already deployed the application."
                        " Dispose it and create a new one to deploy again."
                    ),
                )
            self._deploy_started = True
            self._deploying = True

        try:
            return self._deploy()
        finally:
            with self._lock:
                self._deploying = False
                self._idle.notify_all()

    def _deploy(self) -> DeploymentResult:
        parameters = self.parameters
        self._published_path = self._publisher.publish(parameters)
        self._raise_if_disposed()

        # Recorded before copying so dispose() also removes a partial copy
        self._staged = self._stager.prepare(
            Path(parameters.remote_server_file_share),
            parameters.remote_server_relative_executable_path,
        )
        self._stager.copy(self._published_path, self._staged)
        logger.info(
            "Copied the locally published folder to the file share path "
            f"'{self._staged.deployed_folder_path}'"
        )
        self._raise_if_disposed()

        self._runner.run(ServerAction.START, parameters, self._staged.executable_path)

        with self._lock:
            if self._state is DeploymentLifecycle.DISPOSED:
                raise DeployerDisposedError()
            self._state = DeploymentLifecycle.DEPLOYED

        return DeploymentResult(
            application_base_uri=parameters.application_base_uri_hint,
            deployment_parameters=parameters,
        )

    def _raise_if_disposed(self) -> None:
        with self._lock:
            if self._state is DeploymentLifecycle.DISPOSED:
                raise DeployerDisposedError()

    def dispose(self) -> CleanupResult:
        """Stop the application and delete its files, best effort.

        Only the first call does any work. If a deployment is in progress it
        is interrupted at its next step and this call waits for it before
        cleaning up. Failures are logged as warnings and collected in the
        result; they are never raised.

        Returns:
            CleanupResult listing the steps that failed
        """
        with self._lock:
            if self._state is DeploymentLifecycle.DISPOSED:
                return CleanupResult(errors=[])
            self._state = DeploymentLifecycle.DISPOSED
            while self._deploying:
                self._idle.wait()

        errors: list[str] = []
        for failure_message, step in self._cleanup_steps():
            try:
                step()
            except Exception as exc:
                logger.warning(failure_message, exc_info=exc)
                errors.append(f"{failure_message} {exc}")
        return CleanupResult(errors=errors)

    def _cleanup_steps(self) -> list[CleanupStep]:
        staged = self._staged
        published = self._published_path
        server_name = self.parameters.server_name
        deployed_folder = staged.deployed_folder_path if staged else None

        return [
            (f"Failed to stop the server '{server_name}'.", self._stop_server),
            (
                f"Failed to delete the deployed folder '{deployed_folder}'.",
                self._delete_deployed_folder,
            ),
            (
                f"Failed to delete the locally published folder '{published}'.",
                self._delete_published_folder,
            ),
        ]

    def _stop_server(self) -> None:
        if self._staged is None:
            logger.info("Nothing was staged, skipping server stop")
            return
        logger.info(
            f"Stopping the application on the server '{self.parameters.server_name}'"
        )
        self._runner.run(
            ServerAction.STOP, self.parameters, self._staged.executable_path
        )

    def _delete_deployed_folder(self) -> None:
        if self._staged is None:
            logger.info("Nothing was staged, skipping remote cleanup")
            return
        folder = self._staged.deployed_folder_path
        if not folder.exists():
            logger.info(f"The deployed folder '{folder}' was never created")
            return
        logger.info(f"Deleting the deployed folder '{folder}'")
        self._stager.remove(folder)

    def _delete_published_folder(self) -> None:
        if self._published_path is None:
            logger.info("Nothing was published, skipping local cleanup")
            return
        logger.info(
            f"Deleting the locally published folder '{self._published_path}'"
        )
        remove_directory(self._published_path)

    def __enter__(self) -> RemoteDeployer:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.dispose()
