"""Remote deployment engine.

This package stages published application output on a remote file share,
starts and stops it through control scripts, and cleans everything up.
"""

from remotedeploy.deploy.deployer import RemoteDeployer
from remotedeploy.deploy.publisher import (
    BuildPublisher,
    DotnetPublisher,
    PrebuiltPublisher,
    resolve_publisher,
)
from remotedeploy.deploy.runner import (
    CommandBackend,
    PowerShellBackend,
    RemoteCommandRunner,
    RemoteExecutionBackend,
    ScriptResult,
    format_environment_variables,
)
from remotedeploy.deploy.scripts import ControlScripts, install_control_scripts
from remotedeploy.deploy.stager import ArtifactStager
from remotedeploy.deploy.validator import validate_parameters

__all__ = [
    "ArtifactStager",
    "BuildPublisher",
    "CommandBackend",
    "ControlScripts",
    "DotnetPublisher",
    "PowerShellBackend",
    "PrebuiltPublisher",
    "RemoteCommandRunner",
    "RemoteDeployer",
    "RemoteExecutionBackend",
    "ScriptResult",
    "format_environment_variables",
    "install_control_scripts",
    "resolve_publisher",
    "validate_parameters",
]
