"""CLI commands for deploying applications to a remote server.

Implements 'remotedeploy validate' and 'remotedeploy run'.
"""

from __future__ import annotations

import sys
from collections.abc import Generator
from contextlib import contextmanager

import click

from remotedeploy.config.loader import ConfigLoader
from remotedeploy.lib.errors import (
    ArtifactNotFoundError,
    ConfigError,
    DeployerDisposedError,
    DeploymentError,
    FileNotFoundError,
)
from remotedeploy.lib.logging_config import get_logger, setup_logging
from remotedeploy.models.deployment import RemoteDeploymentParameters

logger = get_logger(__name__)


@contextmanager
def handle_deployment_errors() -> Generator[None, None, None]:
    """Context manager for consistent error handling in deployment commands.

    Exit codes:
        2: Configuration error
        3: Deployment/execution error
    """
    try:
        yield
    except (ConfigError, FileNotFoundError) as e:
        logger.error(f"Configuration error: {e}")
        click.secho("Error: Configuration error", fg="red", err=True)
        click.echo(f"  {e.message}", err=True)
        sys.exit(2)
    except DeploymentError as e:
        logger.error(f"Deployment error: {e}")
        click.secho(f"Error: {e.operation} failed", fg="red", err=True)
        click.echo(f"  {e.message}", err=True)
        sys.exit(3)
    except (ArtifactNotFoundError, DeployerDisposedError) as e:
        logger.error(f"Deployment error: {e}")
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(3)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(3)


def _load_parameters(deployment_config: str) -> RemoteDeploymentParameters:
    from remotedeploy.deploy.validator import validate_parameters

    parameters = ConfigLoader().load_deployment_yaml(deployment_config)
    validate_parameters(parameters)
    return parameters


def _display_parameters(parameters: RemoteDeploymentParameters) -> None:
    server_type = parameters.server_type.value if parameters.server_type else "-"
    click.secho("Deployment Configuration:", bold=True)
    click.echo(f"  Server:      {parameters.server_name}")
    click.echo(f"  Server type: {server_type}")
    click.echo(f"  Account:     {parameters.server_account_name} (password: ***)")
    click.echo(f"  File share:  {parameters.remote_server_file_share}")
    click.echo(f"  Executable:  {parameters.remote_server_relative_executable_path}")
    click.echo(f"  Base URI:    {parameters.application_base_uri_hint}")
    if parameters.published_application_root_path:
        click.echo(f"  Published:   {parameters.published_application_root_path}")
    elif parameters.application_path:
        click.echo(f"  Application: {parameters.application_path}")
    if parameters.environment_variables:
        names = ", ".join(parameters.environment_variables)
        click.echo(f"  Environment: {names}")
    click.echo()


@click.command()
@click.argument(
    "deployment_config",
    type=click.Path(exists=True),
    default="deployment.yaml",
    required=False,
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose debug logging")
@click.option("--quiet", "-q", is_flag=True, help="Suppress progress output")
def validate(deployment_config: str, verbose: bool, quiet: bool) -> None:
    """Validate a deployment configuration without deploying.

    DEPLOYMENT_CONFIG is the path to the deployment YAML file.
    """
    if not quiet:
        setup_logging(verbose=verbose, quiet=quiet)

    with handle_deployment_errors():
        parameters = _load_parameters(deployment_config)

        if quiet:
            click.echo("valid")
            sys.exit(0)

        click.echo()
        _display_parameters(parameters)
        click.secho("Configuration is valid.", fg="green", bold=True)


@click.command()
@click.argument(
    "deployment_config",
    type=click.Path(exists=True),
    default="deployment.yaml",
    required=False,
)
@click.option(
    "--no-wait",
    is_flag=True,
    help="Tear the deployment down as soon as it has started",
)
@click.option(
    "--powershell",
    type=str,
    default="powershell.exe",
    show_default=True,
    help="PowerShell host used to run the control scripts",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose debug logging")
@click.option("--quiet", "-q", is_flag=True, help="Suppress progress output")
def run(
    deployment_config: str,
    no_wait: bool,
    powershell: str,
    verbose: bool,
    quiet: bool,
) -> None:
    """Deploy the application, wait, then tear it down.

    DEPLOYMENT_CONFIG is the path to the deployment YAML file.

    The application stays up until Enter is pressed. Teardown runs even when
    the deployment fails part way.

    Example:

        remotedeploy run deployment.yaml

        remotedeploy run deployment.yaml --no-wait
    """
    if not quiet:
        setup_logging(verbose=verbose, quiet=quiet)

    with handle_deployment_errors():
        from remotedeploy.deploy.deployer import RemoteDeployer
        from remotedeploy.deploy.runner import PowerShellBackend, RemoteCommandRunner
        from remotedeploy.deploy.scripts import install_control_scripts

        parameters = _load_parameters(deployment_config)
        if not quiet:
            click.echo()
            _display_parameters(parameters)

        runner = RemoteCommandRunner(
            backend=PowerShellBackend(
                executable=powershell, scripts=install_control_scripts()
            )
        )
        deployer = RemoteDeployer(parameters, runner=runner)

        try:
            result = deployer.deploy()

            if quiet:
                click.echo(result.application_base_uri)
            else:
                click.secho("Deployment Successful!", fg="green", bold=True)
                click.echo(f"  URL:       {result.application_base_uri}")
                click.echo()

            if not no_wait:
                click.prompt(
                    "Press Enter to stop the application",
                    default="",
                    show_default=False,
                    prompt_suffix="",
                )
        finally:
            if not quiet:
                click.echo("Tearing down the deployment...")
            cleanup = deployer.dispose()
            if not quiet:
                if cleanup.success:
                    click.secho("Teardown complete.", fg="green")
                else:
                    click.secho("Teardown finished with warnings:", fg="yellow")
                    for error in cleanup.errors:
                        click.echo(f"  {error}")
