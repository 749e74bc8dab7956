"""Unit tests for the remote deployer lifecycle."""

from __future__ import annotations

import logging
import shutil
import threading
import time
from collections.abc import Callable
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from remotedeploy.deploy.deployer import RemoteDeployer
from remotedeploy.deploy.publisher import PrebuiltPublisher
from remotedeploy.deploy.runner import ScriptResult
from remotedeploy.deploy.stager import ArtifactStager
from remotedeploy.lib.errors import (
    ArtifactNotFoundError,
    ConfigError,
    DeployerDisposedError,
    DeploymentError,
    ExecutionError,
)
from remotedeploy.models.deployment import (
    CleanupResult,
    DeploymentLifecycle,
    RemoteDeploymentParameters,
    ServerAction,
    ServerType,
)

MakeParameters = Callable[..., RemoteDeploymentParameters]


@pytest.fixture
def parameters(
    make_parameters: MakeParameters, published_dir: Path, file_share: Path
) -> RemoteDeploymentParameters:
    """Parameters pointing at a real published folder and file share."""
    return make_parameters(
        published_application_root_path=str(published_dir),
        remote_server_file_share=str(file_share),
    )


@pytest.fixture
def runner() -> MagicMock:
    """Runner whose scripts always succeed."""
    mock_runner = MagicMock()
    mock_runner.run.side_effect = lambda action, *_: ScriptResult(
        action=action, exit_code=0
    )
    return mock_runner


def _actions(runner: MagicMock) -> list[ServerAction]:
    return [c.args[0] for c in runner.run.call_args_list]


def _wait_for(condition: Callable[[], bool], timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while not condition():
        assert time.monotonic() < deadline, "condition not reached in time"
        time.sleep(0.01)


class TestConstruction:
    """Tests for RemoteDeployer construction."""

    def test_invalid_request_rejected(self, make_parameters: MakeParameters) -> None:
        """Validation runs before any collaborator is touched."""
        runner = MagicMock()

        with pytest.raises(ConfigError):
            RemoteDeployer(
                make_parameters(server_type=ServerType.IIS_EXPRESS), runner=runner
            )

        runner.run.assert_not_called()

    def test_starts_in_created_state(
        self, parameters: RemoteDeploymentParameters, runner: MagicMock
    ) -> None:
        """A new deployer has not staged or published anything."""
        deployer = RemoteDeployer(parameters, runner=runner)

        assert deployer.state is DeploymentLifecycle.CREATED
        assert deployer.staged_deployment is None
        assert deployer.published_path is None

    def test_publisher_chosen_from_parameters(
        self, parameters: RemoteDeploymentParameters, runner: MagicMock
    ) -> None:
        """A published root override uses the prebuilt output."""
        deployer = RemoteDeployer(parameters, runner=runner)

        assert isinstance(deployer._publisher, PrebuiltPublisher)


class TestDeploy:
    """Tests for deploy()."""

    def test_returns_base_uri_hint(
        self, parameters: RemoteDeploymentParameters, runner: MagicMock
    ) -> None:
        """The result carries the hint and the parameters used."""
        deployer = RemoteDeployer(parameters, runner=runner)

        result = deployer.deploy()

        assert result.application_base_uri == "http://test-server-01:5000"
        assert result.deployment_parameters == parameters
        assert deployer.state is DeploymentLifecycle.DEPLOYED

    def test_stages_output_and_starts_executable(
        self,
        parameters: RemoteDeploymentParameters,
        runner: MagicMock,
        published_dir: Path,
        file_share: Path,
    ) -> None:
        """Output is copied to a fresh share folder and the copy is started."""
        deployer = RemoteDeployer(parameters, runner=runner)

        deployer.deploy()

        staged = deployer.staged_deployment
        assert staged is not None
        assert staged.deployed_folder_path.parent == file_share
        assert (staged.deployed_folder_path / "appsettings.json").exists()
        assert deployer.published_path == published_dir
        runner.run.assert_called_once_with(
            ServerAction.START, parameters, staged.executable_path
        )

    def test_logs_staged_folder(
        self,
        parameters: RemoteDeploymentParameters,
        runner: MagicMock,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """The share folder is reported once the copy completes."""
        deployer = RemoteDeployer(parameters, runner=runner)

        with caplog.at_level(logging.INFO, logger="remotedeploy"):
            deployer.deploy()

        assert "Copied the locally published folder to the file share path" in (
            caplog.text
        )

    def test_start_failure_propagates(
        self, parameters: RemoteDeploymentParameters
    ) -> None:
        """A failing start script surfaces unchanged and nothing is undone."""
        runner = MagicMock()
        runner.run.side_effect = ExecutionError(
            server_name="test-server-01",
            action="StartServer",
            message="Failed to execute the script on 'test-server-01' (exit code 1).",
            exit_code=1,
        )
        deployer = RemoteDeployer(parameters, runner=runner)

        with pytest.raises(ExecutionError):
            deployer.deploy()

        assert deployer.state is DeploymentLifecycle.CREATED
        staged = deployer.staged_deployment
        assert staged is not None
        assert staged.deployed_folder_path.exists()

    def test_missing_published_output_propagates(
        self, make_parameters: MakeParameters, tmp_path: Path, runner: MagicMock
    ) -> None:
        """A missing published root fails before staging or starting."""
        parameters = make_parameters(
            published_application_root_path=str(tmp_path / "missing"),
            remote_server_file_share=str(tmp_path / "share"),
        )
        deployer = RemoteDeployer(parameters, runner=runner)

        with pytest.raises(ArtifactNotFoundError):
            deployer.deploy()

        runner.run.assert_not_called()
        assert deployer.staged_deployment is None

    def test_second_deploy_rejected(
        self, parameters: RemoteDeploymentParameters, runner: MagicMock
    ) -> None:
        """Each deployer deploys at most once."""
        deployer = RemoteDeployer(parameters, runner=runner)
        deployer.deploy()

        with pytest.raises(DeploymentError, match="already deployed"):
            deployer.deploy()

        assert _actions(runner) == [ServerAction.START]

    def test_deploy_after_dispose_rejected_without_io(
        self, parameters: RemoteDeploymentParameters, runner: MagicMock
    ) -> None:
        """A disposed deployer refuses to deploy and performs no work."""
        publisher = MagicMock()
        stager = MagicMock()
        deployer = RemoteDeployer(
            parameters, publisher=publisher, runner=runner, stager=stager
        )
        deployer.dispose()

        with pytest.raises(DeployerDisposedError):
            deployer.deploy()

        publisher.publish.assert_not_called()
        stager.prepare.assert_not_called()
        stager.copy.assert_not_called()
        runner.run.assert_not_called()


class TestDispose:
    """Tests for dispose()."""

    def test_stops_server_and_deletes_folders(
        self, parameters: RemoteDeploymentParameters, runner: MagicMock
    ) -> None:
        """Cleanup stops the app then removes the share and local folders."""
        deployer = RemoteDeployer(parameters, runner=runner)
        deployer.deploy()
        staged = deployer.staged_deployment
        assert staged is not None

        result = deployer.dispose()

        assert result.success
        assert _actions(runner) == [ServerAction.START, ServerAction.STOP]
        assert runner.run.call_args_list[1].args[2] == staged.executable_path
        assert not staged.deployed_folder_path.exists()
        assert not Path(parameters.published_application_root_path).exists()
        assert deployer.state is DeploymentLifecycle.DISPOSED

    def test_dispose_twice_stops_once(
        self, parameters: RemoteDeploymentParameters, runner: MagicMock
    ) -> None:
        """Only the first dispose does any work."""
        deployer = RemoteDeployer(parameters, runner=runner)
        deployer.deploy()

        deployer.dispose()
        second = deployer.dispose()

        assert second.errors == []
        assert _actions(runner).count(ServerAction.STOP) == 1

    def test_concurrent_dispose_stops_once(
        self, parameters: RemoteDeploymentParameters, runner: MagicMock
    ) -> None:
        """Racing dispose calls still run cleanup a single time."""
        deployer = RemoteDeployer(parameters, runner=runner)
        deployer.deploy()

        threads = [threading.Thread(target=deployer.dispose) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert _actions(runner).count(ServerAction.STOP) == 1

    def test_stop_failure_still_deletes_folders(
        self,
        parameters: RemoteDeploymentParameters,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """A failing stop is logged and the remaining steps still run."""
        runner = MagicMock()

        def run(action: ServerAction, *_: object) -> ScriptResult:
            if action is ServerAction.STOP:
                raise ExecutionError(
                    server_name="test-server-01",
                    action="StopServer",
                    message="Failed to execute the script on 'test-server-01'.",
                    exit_code=1,
                )
            return ScriptResult(action=action, exit_code=0)

        runner.run.side_effect = run
        deployer = RemoteDeployer(parameters, runner=runner)
        deployer.deploy()
        staged = deployer.staged_deployment
        assert staged is not None

        with caplog.at_level(logging.WARNING, logger="remotedeploy"):
            result = deployer.dispose()

        assert not result.success
        assert len(result.errors) == 1
        assert "Failed to stop the server 'test-server-01'." in result.errors[0]
        assert "Failed to stop the server" in caplog.text
        assert not staged.deployed_folder_path.exists()
        assert not Path(parameters.published_application_root_path).exists()

    def test_folder_failures_collected(
        self, parameters: RemoteDeploymentParameters, runner: MagicMock
    ) -> None:
        """Every failing step is reported and none of them raise."""
        stager = MagicMock(wraps=ArtifactStager())
        stager.remove.side_effect = PermissionError("share is read-only")
        deployer = RemoteDeployer(parameters, runner=runner, stager=stager)
        deployer.deploy()
        Path(parameters.published_application_root_path).rename(
            Path(parameters.published_application_root_path).with_name("moved")
        )

        result = deployer.dispose()

        assert len(result.errors) == 2
        assert "Failed to delete the deployed folder" in result.errors[0]
        assert "Failed to delete the locally published folder" in result.errors[1]

    def test_dispose_without_deploy_is_noop(
        self, parameters: RemoteDeploymentParameters, runner: MagicMock
    ) -> None:
        """Disposing a fresh deployer touches nothing."""
        deployer = RemoteDeployer(parameters, runner=runner)

        result = deployer.dispose()

        assert result.success
        runner.run.assert_not_called()
        assert Path(parameters.published_application_root_path).exists()

    def test_dispose_after_failed_start_cleans_up(
        self, parameters: RemoteDeploymentParameters
    ) -> None:
        """Whatever a failed deploy staged is removed on dispose."""
        runner = MagicMock()
        runner.run.side_effect = [
            ExecutionError(
                server_name="test-server-01",
                action="StartServer",
                message="Timed out after 60s executing the script on 'test-server-01'.",
                timed_out=True,
            ),
            ScriptResult(action=ServerAction.STOP, exit_code=0),
        ]
        deployer = RemoteDeployer(parameters, runner=runner)
        with pytest.raises(ExecutionError):
            deployer.deploy()
        staged = deployer.staged_deployment
        assert staged is not None

        result = deployer.dispose()

        assert result.success
        assert _actions(runner) == [ServerAction.START, ServerAction.STOP]
        assert not staged.deployed_folder_path.exists()

    def test_context_manager_disposes(
        self, parameters: RemoteDeploymentParameters, runner: MagicMock
    ) -> None:
        """Leaving the with-block disposes the deployer."""
        with RemoteDeployer(parameters, runner=runner) as deployer:
            deployer.deploy()

        assert deployer.state is DeploymentLifecycle.DISPOSED
        assert _actions(runner) == [ServerAction.START, ServerAction.STOP]

    def test_partial_copy_removed_on_dispose(
        self,
        parameters: RemoteDeploymentParameters,
        runner: MagicMock,
        file_share: Path,
    ) -> None:
        """A copy that fails part way still leaves nothing on the share."""
        real_copy2 = shutil.copy2
        copied: list[Path] = []

        def copy_then_fail(source: Path, target: Path) -> None:
            if copied:
                raise OSError("The network path was not found")
            copied.append(Path(target))
            real_copy2(source, target)

        deployer = RemoteDeployer(parameters, runner=runner)
        with patch(
            "remotedeploy.deploy.stager.shutil.copy2", side_effect=copy_then_fail
        ):
            with pytest.raises(OSError, match="network path"):
                deployer.deploy()

        staged = deployer.staged_deployment
        assert staged is not None
        assert staged.deployed_folder_path.exists()

        result = deployer.dispose()

        assert result.success
        assert list(file_share.iterdir()) == []

    def test_skipped_steps_logged(
        self,
        parameters: RemoteDeploymentParameters,
        runner: MagicMock,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Steps with nothing to act on are reported at INFO."""
        deployer = RemoteDeployer(parameters, runner=runner)

        with caplog.at_level(logging.INFO, logger="remotedeploy"):
            deployer.dispose()

        assert "Nothing was staged, skipping server stop" in caplog.text
        assert "Nothing was staged, skipping remote cleanup" in caplog.text
        assert "Nothing was published, skipping local cleanup" in caplog.text


class TestDisposeDuringDeploy:
    """Tests for dispose() racing an in-flight deploy()."""

    def _run_in_thread(
        self, target: Callable[[], object], outcomes: list[object]
    ) -> threading.Thread:
        def _target() -> None:
            try:
                outcomes.append(target())
            except Exception as exc:
                outcomes.append(exc)

        thread = threading.Thread(target=_target)
        thread.start()
        return thread

    def test_dispose_while_publishing_aborts_deploy(
        self,
        parameters: RemoteDeploymentParameters,
        runner: MagicMock,
        published_dir: Path,
        file_share: Path,
    ) -> None:
        """Deploy stops after publishing and nothing is staged or started."""
        entered = threading.Event()
        gate = threading.Event()

        def publish(_: RemoteDeploymentParameters) -> Path:
            entered.set()
            gate.wait(timeout=5)
            return published_dir

        publisher = MagicMock()
        publisher.publish.side_effect = publish
        deployer = RemoteDeployer(parameters, publisher=publisher, runner=runner)

        deploy_outcome: list[object] = []
        dispose_outcome: list[object] = []
        deploy_thread = self._run_in_thread(deployer.deploy, deploy_outcome)
        assert entered.wait(timeout=5)
        dispose_thread = self._run_in_thread(deployer.dispose, dispose_outcome)
        _wait_for(lambda: deployer.state is DeploymentLifecycle.DISPOSED)
        gate.set()
        deploy_thread.join(timeout=5)
        dispose_thread.join(timeout=5)

        assert isinstance(deploy_outcome[0], DeployerDisposedError)
        (cleanup,) = dispose_outcome
        assert isinstance(cleanup, CleanupResult)
        assert cleanup.success
        runner.run.assert_not_called()
        assert list(file_share.iterdir()) == []
        assert not published_dir.exists()

    def test_dispose_while_starting_stops_server(
        self, parameters: RemoteDeploymentParameters, file_share: Path
    ) -> None:
        """A server started during dispose is stopped and its folder removed."""
        entered = threading.Event()
        gate = threading.Event()

        def run(action: ServerAction, *_: object) -> ScriptResult:
            if action is ServerAction.START:
                entered.set()
                gate.wait(timeout=5)
            return ScriptResult(action=action, exit_code=0)

        runner = MagicMock()
        runner.run.side_effect = run
        deployer = RemoteDeployer(parameters, runner=runner)

        deploy_outcome: list[object] = []
        dispose_outcome: list[object] = []
        deploy_thread = self._run_in_thread(deployer.deploy, deploy_outcome)
        assert entered.wait(timeout=5)
        dispose_thread = self._run_in_thread(deployer.dispose, dispose_outcome)
        _wait_for(lambda: deployer.state is DeploymentLifecycle.DISPOSED)
        gate.set()
        deploy_thread.join(timeout=5)
        dispose_thread.join(timeout=5)

        assert isinstance(deploy_outcome[0], DeployerDisposedError)
        assert _actions(runner) == [ServerAction.START, ServerAction.STOP]
        assert list(file_share.iterdir()) == []
