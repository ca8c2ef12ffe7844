import logging
import os
import sys
import typing as t
from gettext import gettext as _

import click

from ghremote.errors import GHRemoteError
from ghremote.errors import InvalidSpecError
from ghremote.parser import parse_selector
from ghremote.selectors import Selector


logger = logging.getLogger(__name__)

T = t.TypeVar("T")


def partition(predicate: t.Callable[[T], bool], iterable: t.Iterable[T]):
    """Split :param:`iterable` into the items matching :param:`predicate` and the rest."""
    trues: t.List[T] = []
    falses: t.List[T] = []
    for item in iterable:
        (trues if predicate(item) else falses).append(item)
    return trues, falses


class ParamTypeG(click.ParamType, t.Generic[T]):
    def convert(
        self,
        value: t.Union[str, T],
        param: t.Optional[click.Parameter],
        ctx: t.Optional[click.Context],
    ) -> T:
        return super().convert(value, param, ctx)


class SelectorType(ParamTypeG[Selector]):
    """A git ref, a pull request as '#NUMBER', or '*' for the latest release."""

    name = "Selector"

    def convert(self, value: t.Union[str, Selector], param, ctx):
        if isinstance(value, Selector):
            return value

        text = value if value.startswith("#") else "@" + value
        try:
            return parse_selector(text)
        except InvalidSpecError as e:
            self.fail(f"'{value}' is not a valid ref ({e.reason}).", param, ctx)


loglevel_flags = {
    "--debug": logging.DEBUG,
    "--quiet": logging.ERROR,
}


def debug_enabled(logflags: t.Sequence[str] = ()):
    return "--debug" in logflags or os.getenv("GHREMOTE_DEBUG", "").lower() in (
        "true",
        "yes",
        "1",
    )


class CatchErrorsGroup(click.Group):
    """Group that accepts the log level flags anywhere on the command line.

    Errors that escape a command are logged instead of printing a traceback,
    unless debugging.
    """

    def main(self, args=None, *params, **extra):
        argv = list(sys.argv[1:] if args is None else args)
        logflags, argv = partition(lambda arg: arg in loglevel_flags, argv)
        debug = debug_enabled(logflags)
        if logflags:
            level = loglevel_flags[logflags[-1]]
        else:
            level = logging.DEBUG if debug else logging.INFO
        logging.getLogger("ghremote").setLevel(level)

        try:
            return super().main(argv, *params, **extra)
        except GHRemoteError as e:
            if debug:
                logger.exception(str(e))
            else:
                logger.error(str(e))
            sys.exit(1)
        except Exception as e:
            if debug:
                logger.exception("An unhandled exception has occurred:")
            else:
                logger.error(
                    "An unhandled exception has occurred:\n  "
                    + click.style(repr(e), "red")
                )
                logger.error(
                    "Use the --debug flag to disable clean exception handling."
                )
            sys.exit(1)


class CommandExt(click.Command):
    """Command with support for multiple usage lines"""

    def __init__(self, *args, **kwargs) -> None:
        self.usages: t.List[t.List[str]] = kwargs.pop("usages", [])
        super().__init__(*args, **kwargs)

    def format_usage(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        if not self.usages:
            return super().format_usage(ctx, formatter)

        options_metavar = [self.options_metavar] if self.options_metavar else []
        prefix = None
        for usage in self.usages:
            formatter.write_usage(
                ctx.command_path, " ".join(options_metavar + usage), prefix
            )
            prefix = f"   {_('OR:')} "
