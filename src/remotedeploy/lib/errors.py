"""Custom exception hierarchy for remotedeploy configuration and operations."""


class RemoteDeployError(Exception):
    """Base exception for all remotedeploy errors.

    All remotedeploy-specific exceptions inherit from this class, enabling
    centralized exception handling in the CLI and in test harnesses.
    """

    pass


class ConfigError(RemoteDeployError):
    """Exception raised for configuration errors.

    Raised when a deployment request is incomplete or inconsistent, or when
    configuration loading or parsing fails. Always names the offending field.

    Attributes:
        field: The configuration field that caused the error
        message: Human-readable error message describing the issue
    """

    def __init__(self, field: str, message: str) -> None:
        """Initialize ConfigError with field and message.

        Args:
            field: Configuration field name where error occurred
            message: Descriptive error message
        """
        self.field = field
        self.message = message
        super().__init__(f"Configuration error in '{field}': {message}")


class FileNotFoundError(RemoteDeployError):
    """Exception raised when a configuration file is not found.

    Attributes:
        path: Path to the file that was not found
        message: Human-readable error message
    """

    def __init__(self, path: str, message: str) -> None:
        """Initialize FileNotFoundError with path and message.

        Args:
            path: Path to the file that was not found
            message: Descriptive error message, optionally with suggestions
        """
        self.path = path
        self.message = message
        super().__init__(f"File not found: {path}\n{message}")


class ArtifactNotFoundError(RemoteDeployError):
    """Exception raised when an expected artifact directory is missing.

    Covers the published output on the local machine as well as staged
    folders on the file share.

    Attributes:
        path: Path of the missing directory
    """

    def __init__(self, path: str) -> None:
        """Create a not-found error for a directory tree."""
        self.path = path
        super().__init__(
            f"Source directory does not exist or could not be found: {path}"
        )


class DeploymentError(RemoteDeployError):
    """Exception raised when a deployment operation fails.

    Attributes:
        operation: The deployment step that failed (publish, deploy, ...)
        message: Human-readable error message
    """

    def __init__(self, operation: str, message: str) -> None:
        """Initialize DeploymentError with the failing operation.

        Args:
            operation: Name of the failing deployment step
            message: Descriptive error message
        """
        self.operation = operation
        self.message = message
        super().__init__(f"Deployment {operation} failed: {message}")


class ExecutionError(DeploymentError):
    """Exception raised when a remote control script fails or times out.

    Attributes:
        server_name: Target host the script was run against
        action: Server action token (StartServer, StopServer)
        exit_code: Process exit code, None when the script timed out
        timed_out: Whether the script exceeded its time budget
    """

    def __init__(
        self,
        server_name: str,
        action: str,
        message: str,
        exit_code: int | None = None,
        timed_out: bool = False,
    ) -> None:
        """Create an execution error with host and action context."""
        self.server_name = server_name
        self.action = action
        self.exit_code = exit_code
        self.timed_out = timed_out
        super().__init__(operation=action, message=message)


class DeployerDisposedError(RemoteDeployError):
    """Exception raised when a disposed deployer is asked to deploy again."""

    def __init__(self) -> None:
        """Create a disposed-state error."""
        super().__init__("This instance of deployer has already been disposed.")
