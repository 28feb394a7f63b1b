import functools
import sys

from rich.console import Console

from deskctl.context import Context

console = Console(stderr=True)


def handle_shutdown_command(func):
    """Decorator that supplies a cancellation context and reports failures.

    The wrapped command receives ``ctx`` as its first argument. Ctrl-C
    cancels the context so in-flight VM manager commands are torn down.
    """
    @functools.wraps(func)
    def wrapper(*args, timeout=None, **kwargs):
        ctx = Context(timeout=timeout)
        try:
            return func(ctx, *args, **kwargs)
        except KeyboardInterrupt:
            ctx.cancel()
            console.print("\n[yellow]Operation cancelled by user[/yellow]")
            sys.exit(1)
        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")
            sys.exit(1)
    return wrapper
