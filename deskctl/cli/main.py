import logging

import click
from rich.console import Console

from deskctl import __version__
from deskctl.shutdown import InitiatingCommand, finish_shutdown
from deskctl.utils.logging import setup_logging
from .utils import handle_shutdown_command

console = Console()

wait_option = click.option(
    '--wait/--no-wait',
    default=True,
    show_default=True,
    help='Give each process time to exit before killing it.',
)
timeout_option = click.option(
    '--timeout',
    type=click.FloatRange(min=0),
    default=None,
    help='Cancel VM manager commands still running after this many seconds.',
)


@click.group()
@click.version_option(__version__, prog_name='deskctl')
@click.option('--verbose', '-v', is_flag=True, help='Enables verbose mode.')
@click.option('--quiet', '-q', is_flag=True, help='Enables quiet mode.')
@click.pass_context
def app(ctx, verbose, quiet):
    """
    Control CLI for the desktop application.
    """
    ctx.ensure_object(dict)
    ctx.obj['VERBOSE'] = verbose
    ctx.obj['QUIET'] = quiet

    if verbose:
        setup_logging(level=logging.DEBUG)
    elif quiet:
        setup_logging(level=logging.ERROR)
    else:
        setup_logging()


@app.command()
@wait_option
@timeout_option
@handle_shutdown_command
def shutdown(ctx, wait):
    """Makes sure none of the application's processes are left running."""
    finish_shutdown(ctx, wait, InitiatingCommand.SHUTDOWN)
    console.print("[green]Shutdown complete[/green]")


@app.command(name='factory-reset')
@wait_option
@timeout_option
@handle_shutdown_command
def factory_reset(ctx, wait):
    """Stops the application and deletes its virtual machine."""
    finish_shutdown(ctx, wait, InitiatingCommand.FACTORY_RESET)
    console.print("[green]Virtual machine deleted and processes stopped[/green]")


if __name__ == '__main__':
    app()
