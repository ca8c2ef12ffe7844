#!/usr/bin/env python
import logging
import os
from importlib import import_module

import click

import ghremote.clickExt as clickExt
from ghremote.config import UserInfo
from ghremote.logging import ClickFormatter
from ghremote.logging import EchoHandler


# This should be the root module logger, even though __name__ is 'ghremote.ghremote'
logger = logging.getLogger("ghremote")


def setup_logging():
    # Logging should not be setup in the global scope or it breaks pytest log capturing
    if not any(isinstance(h, EchoHandler) for h in logger.handlers):
        handler = EchoHandler()
        handler.setFormatter(ClickFormatter())
        logger.addHandler(handler)
    # Required to avoid duplicate logging, among other things
    logger.propagate = False


@click.group(
    cls=clickExt.CatchErrorsGroup,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.pass_context
@click.version_option(package_name="ghremote")
def cli(ctx: click.Context):
    """Resolve, download and pin packages hosted on GitHub.

    Global flags: --debug, --quiet.
    """
    setup_logging()
    ctx.obj = UserInfo()


cmd_folder = os.path.abspath(os.path.join(os.path.dirname(__file__), "commands"))
for filename in sorted(os.listdir(cmd_folder)):
    if filename.endswith(".py") and not filename.startswith("__"):
        import_module(f"ghremote.commands.{filename[:-3]}")
