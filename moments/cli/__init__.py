"""Moments CLI — command line interface."""

import click
from moments import __version__


@click.group()
@click.version_option(version=__version__, prog_name="moments")
def cli():
    """Moments — private microblog assistant."""


from . import cmd_start  # noqa: E402, F401
