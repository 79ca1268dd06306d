"""thin - launch a thin application archive with resolved dependencies."""

import logging
import os
import sys

import click

from .config import LaunchConfig
from .console import err_console
from .errors import ThinLaunchError
from .launcher import LaunchMode
from .launcher import build_controller
from .logging_setup import init_logging
from .logging_setup import resolve_level
from .settings import LauncherSettings
from .ui import display_launch_error

logger = logging.getLogger(__name__)


@click.command(
    name="thin",
    context_settings={"ignore_unknown_options": True, "help_option_names": []},
)
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def cli(ctx: click.Context, args: tuple[str, ...]):
    """Resolve the application's dependencies and run it.

    Launcher options use the --thin. prefix (--thin.dryrun, --thin.classpath,
    --thin.profile=dev, ...). Everything else is passed to the application.
    """
    args_list = list(args)
    try:
        config = LaunchConfig.resolve(args_list, os.environ, LauncherSettings().get_properties())
        init_logging(
            resolve_level(config.debug, config.trace, quiet=LaunchMode.from_config(config) is LaunchMode.CLASSPATH),
            config.log_path,
        )
        logger.debug(f"Launch mode: {LaunchMode.from_config(config).value}")
        code = build_controller(config, program=sys.argv[0] if sys.argv else None).run(args_list)
    except ThinLaunchError as e:
        display_launch_error(err_console, e)
        ctx.exit(1)
    ctx.exit(code)


def main(argv: list[str] | None = None) -> None:
    """Console entry point.

    A leading ``--`` makes click hand every token over untouched, including
    the application's own ``--`` separator.
    """
    argv = sys.argv[1:] if argv is None else argv
    cli.main(args=["--", *argv], prog_name="thin")


if __name__ == "__main__":
    main()
