"""Clean error display for launch failures."""

from rich.console import Console
from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..errors import ConfigurationError
from ..errors import EntryPointNotFound
from ..errors import ResolutionError
from ..errors import ThinLaunchError

_HINTS: list[tuple[type[ThinLaunchError], str]] = [
    (EntryPointNotFound, "Set thin.main to a module or module:function"),
    (ConfigurationError, "Check the value on the command line, in the environment, or in .thin/settings.yaml"),
    (ResolutionError, "Run with --thin.dryrun --debug to see what is being resolved"),
]


def _hint_for(error: ThinLaunchError) -> str | None:
    for error_type, hint in _HINTS:
        if isinstance(error, error_type):
            return hint
    return None


def render_launch_error(error: ThinLaunchError) -> Panel:
    """Build the panel shown for a launch error."""
    parts: list = [Text(error.message)]

    if error.context:
        table = Table(show_header=False, box=None, padding=(0, 1))
        table.add_column(style="dim")
        table.add_column()
        for key, value in error.context.items():
            table.add_row(str(key), str(value))
        parts.extend([Text(""), table])

    hint = _hint_for(error)
    if hint:
        parts.extend([Text(""), Text(hint, style="dim")])

    title = error.title
    if isinstance(error, ResolutionError):
        title = f"{title} ({error.kind.value})"
    return Panel(Group(*parts), title=f"[bold red]{title}[/bold red]", border_style="red", expand=False)


def display_launch_error(console: Console, error: ThinLaunchError) -> None:
    """Print a launch error once, with its context."""
    console.print(render_launch_error(error))
