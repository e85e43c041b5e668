#!/usr/bin/env python3

import click

from gitjanitor.commands.clean import clean_handler
from gitjanitor.commands.config import config_cmd
from gitjanitor.commands.tag import tag_cmd


@click.group()
@click.version_option(package_name="gitjanitor")
def cli():
    """gitjanitor - Lifecycle housekeeping for git branches and tags.

    Warns owners about inactive branches, archives stale branches as tags
    and deletes archive tags once they expire.
    """
    pass


cli.add_command(clean_handler, name='clean')

# Command groups
cli.add_command(config_cmd)
cli.add_command(tag_cmd)


def main():
    cli()

if __name__ == "__main__":
    main()
