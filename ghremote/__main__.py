from importlib.metadata import version

import click

from ghremote.ghremote import cli

version = version("ghremote")

# Override built in version detection to fix issues when running as __main__
click.version_option(version=version, package_name="ghremote")(cli)

cli()
