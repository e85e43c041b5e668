"""
Common CLI utilities and decorators for consistent command behavior.
"""

import json
import sys
from functools import wraps
from typing import Any, Dict

import click

from .exit_codes import INTERRUPTED, CommandError


def handle_errors(func):
    """
    Decorator that maps failures to exit codes:
    - CommandError (and ConfigError): message on stderr, its own exit code
    - KeyboardInterrupt: INTERRUPTED
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except KeyboardInterrupt:
            click.echo("Interrupted by user", err=True)
            sys.exit(INTERRUPTED)
        except click.ClickException:
            # Click exceptions already have their exit code
            raise
        except CommandError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(e.exit_code)

    return wrapper


def print_jsonl(item: Dict[str, Any]) -> None:
    """Print one JSON object per line on stdout."""
    print(json.dumps(item, ensure_ascii=False), flush=True)


# Standard options that many commands share
common_options = {
    'config': click.option('--config', 'config_path', type=click.Path(dir_okay=False),
                           help='Config file (default: $GITJANITOR_CONFIG or ~/.gitjanitor/config.*)'),
    'verbose': click.option('-v', '--verbose', is_flag=True,
                            help='Enable debug logging'),
    'json': click.option('--json', 'output_json', is_flag=True,
                         help='Output as JSONL'),
}


def add_common_options(*option_names):
    """
    Decorator to add common options to a command.

    Example:
        @add_common_options('config', 'verbose')
        def my_command(config_path, verbose):
            ...
    """
    def decorator(func):
        for name in reversed(option_names):
            if name in common_options:
                func = common_options[name](func)
        return func
    return decorator
