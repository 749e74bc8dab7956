"""remotedeploy - Deploy published applications to remote servers for testing.

Copies an application's published output to a file share, starts it on a
remote host under IIS, Kestrel or WebListener, and tears it down again so an
automated test run can exercise it over the network.

Main features:
- Validated deployment requests with field-specific errors
- Staging under a fresh folder per deployment
- Start/stop through bundled PowerShell control scripts
- Best-effort teardown that never raises
"""

from remotedeploy.deploy.deployer import RemoteDeployer
from remotedeploy.lib.errors import (
    ConfigError,
    DeployerDisposedError,
    DeploymentError,
    ExecutionError,
    RemoteDeployError,
)
from remotedeploy.models.deployment import (
    DeploymentResult,
    RemoteDeploymentParameters,
    ServerType,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "ConfigError",
    "DeployerDisposedError",
    "DeploymentError",
    "DeploymentResult",
    "ExecutionError",
    "RemoteDeployError",
    "RemoteDeployer",
    "RemoteDeploymentParameters",
    "ServerType",
]
