"""Entry point for the remotedeploy command-line interface."""

import click

from remotedeploy import __version__
from remotedeploy.cli.commands.deploy import run, validate


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="remotedeploy")
@click.pass_context
def main(ctx: click.Context) -> None:
    """Deploy published applications to remote servers for testing.

    Subcommands:

        validate  Check a deployment configuration

        run       Deploy, wait, then tear down
    """
    ctx.ensure_object(dict)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


main.add_command(validate)
main.add_command(run)


if __name__ == "__main__":  # pragma: no cover
    main()
