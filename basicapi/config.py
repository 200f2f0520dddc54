"""Startup configuration.

Settings come from two sources, applied in order so later ones win:
    1. Environment variables
    2. Command-line arguments (--Key value, --Key=value, /Key value, /Key=value, Key=value)

Keys are case-insensitive. The merged map is turned into a single immutable
Settings value once, before the app is built.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict


class ConfigurationError(ValueError):
    """Raised when startup configuration cannot be loaded."""
    pass


def _truthy(val: str | None) -> bool:
    if val is None:
        return False
    return val.strip().lower() in {"1", "true", "yes", "y", "on"}


class Settings(BaseModel):
    """Resolved startup settings."""
    model_config = ConfigDict(frozen=True)

    connection_string: Optional[str] = None
    database: Optional[str] = None
    content_root: Path
    generate_sql_scripts: bool = False


def parse_command_line(argv: Sequence[str]) -> dict[str, str]:
    """Parse command-line arguments into a key/value map.

    Args:
        argv: Arguments without the program name

    Returns:
        Map of lower-cased keys to values

    Raises:
        ConfigurationError: A prefixed key has no value, or a single-dash switch is used
    """
    values: dict[str, str] = {}
    i = 0
    while i < len(argv):
        arg = argv[i]
        i += 1

        if arg.startswith("--"):
            body = arg[2:]
        elif arg.startswith("/"):
            body = arg[1:]
        elif arg.startswith("-"):
            raise ConfigurationError(f"Unsupported command-line switch '{arg}'")
        elif "=" in arg:
            body = arg
        else:
            # Bare words carry no key; skip them
            continue

        if "=" in body:
            key, value = body.split("=", 1)
        else:
            if i >= len(argv):
                raise ConfigurationError(f"Missing value for command-line argument '{arg}'")
            key, value = body, argv[i]
            i += 1

        key = key.strip()
        if not key:
            raise ConfigurationError(f"Empty key in command-line argument '{arg}'")
        values[key.lower()] = value

    return values


def load_configuration(
    argv: Sequence[str] = (),
    environ: Optional[Mapping[str, str]] = None,
) -> dict[str, str]:
    """Merge environment variables and command-line arguments.

    Command-line values override environment values with the same key.
    """
    if environ is None:
        environ = os.environ
    values = {key.lower(): value for key, value in environ.items()}
    values.update(parse_command_line(argv))
    return values


def build_settings(values: Mapping[str, str]) -> Settings:
    """Build the Settings value from a merged configuration map."""
    def get(key: str) -> Optional[str]:
        value = values.get(key.lower())
        return value if value else None

    content_root = Path(get("ContentRoot") or os.getcwd()).resolve()

    return Settings(
        connection_string=get("ConnectionString"),
        database=get("Database"),
        content_root=content_root,
        generate_sql_scripts=_truthy(get("GenerateSqlScripts")),
    )


def load_settings(
    argv: Sequence[str] = (),
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Load settings from the environment and the command line."""
    return build_settings(load_configuration(argv, environ))
