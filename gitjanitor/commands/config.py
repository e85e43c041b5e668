import json
from typing import Optional

import click

from ..cli_utils import add_common_options, handle_errors
from ..config import (
    generate_config_example,
    get_config_path,
    load_config,
    save_config,
    validate_config,
)
from ..exit_codes import GENERAL_ERROR, CommandError


@click.group("config")
def config_cmd():
    """Configuration management commands."""
    pass


@config_cmd.command("show")
@add_common_options('config')
@click.option("--pretty", is_flag=True, help="Display as formatted JSON instead of single-line JSONL")
@click.option("--path", is_flag=True, help="Show the config file path being used")
@handle_errors
def show_config(config_path: Optional[str], pretty: bool, path: bool):
    """Show the current configuration with all merges applied.

    By default, outputs single-line JSON (JSONL format).
    Use --pretty for human-readable formatted output.
    Use --path to see which config file is being used.
    Credentials are masked.
    """
    if path:
        print(json.dumps({"config_path": str(get_config_path(config_path))}))
        return

    config = load_config(config_path)
    for section in ("credentials", "email"):
        if config.get(section, {}).get("password"):
            config[section]["password"] = "***"

    if pretty:
        # Pretty print for human readability
        print(json.dumps(config, indent=2, ensure_ascii=False))
    else:
        # Default: single-line JSON (JSONL)
        print(json.dumps(config, ensure_ascii=False))


@config_cmd.command("init")
@add_common_options('config')
@click.option("--force", is_flag=True, help="Overwrite an existing config file")
@handle_errors
def init_config(config_path: Optional[str], force: bool):
    """Write an example configuration file.

    The file format follows the extension (.json, .toml, .yaml/.yml).
    """
    target = get_config_path(config_path)
    if target.exists() and not force:
        raise CommandError(
            f"Config already exists at {target} (use --force to overwrite)", GENERAL_ERROR
        )
    written = save_config(generate_config_example(), target)
    click.echo(f"Example configuration written to {written}")


@config_cmd.command("validate")
@add_common_options('config')
@handle_errors
def validate_config_cmd(config_path: Optional[str]):
    """Validate configuration and list the repositories it describes."""
    config = load_config(config_path)
    infos = validate_config(config)
    for info in infos:
        print(json.dumps(info.to_dict(), ensure_ascii=False))
    click.echo(f"Configuration OK: {len(infos)} repositories", err=True)
