"""Command aliases from ``.sleepship.toml``.

Example file::

    [aliases]
    dev = "sync tasks-dev.md"
    test = "sync tasks-test.md --max-retries 5"
    ci = "test --no-branch"

``sleepship ci --dir ../app`` then runs
``sleepship sync tasks-test.md --max-retries 5 --no-branch --dir ../app``.
"""

import shlex
import tomllib
from collections.abc import Mapping, Sequence
from pathlib import Path

from loguru import logger

from sleepship.core.exceptions import AliasError

CONFIG_FILE_NAME = ".sleepship.toml"


def find_config_path(cwd: str | Path | None = None, home: str | Path | None = None) -> Path | None:
    """
    Locate the alias configuration file.

    The current directory is searched first, then the home directory.

    Returns:
        Path of the file, or None when neither location has one.
    """
    for directory in (Path(cwd) if cwd else Path.cwd(), Path(home) if home else Path.home()):
        candidate = directory / CONFIG_FILE_NAME
        if candidate.is_file():
            return candidate
    return None


def load_aliases(cwd: str | Path | None = None, home: str | Path | None = None) -> dict[str, str]:
    """
    Load the ``[aliases]`` table.

    Returns:
        Alias name to command; empty when no configuration file exists.

    Raises:
        AliasError: If the file cannot be read or is not valid TOML.
    """
    path = find_config_path(cwd, home)
    if path is None:
        return {}

    try:
        with path.open("rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise AliasError(f"failed to parse config file {path}: {e}") from e

    aliases = data.get("aliases", {})
    if not isinstance(aliases, dict):
        raise AliasError(f"[aliases] in {path} must be a table")

    logger.debug(f"Loaded {len(aliases)} aliases from {path}")
    return {str(name): str(command) for name, command in aliases.items()}


def resolve_alias(name: str, aliases: Mapping[str, str]) -> str:
    """
    Resolve an alias to the command it stands for.

    When the first word of the command is itself an alias it is resolved
    recursively and substituted in place.

    Raises:
        AliasError: If the alias is unknown or refers back to itself.

    Example:
        >>> resolve_alias("ci", {"test": "sync t.md", "ci": "test --no-branch"})
        'sync t.md --no-branch'
    """
    return _resolve(name, aliases, set())


def _resolve(name: str, aliases: Mapping[str, str], visited: set[str]) -> str:
    if name in visited:
        raise AliasError(f"circular reference detected in alias: {name}")
    if name not in aliases:
        raise AliasError(f"alias not found: {name}")

    visited.add(name)
    command = aliases[name]
    parts = command.split()
    if parts and parts[0] in aliases:
        parts[0] = _resolve(parts[0], aliases, visited)
        return " ".join(parts)
    return command


def expand_alias_args(command: str, args: Sequence[str]) -> str:
    """Append extra command-line arguments to a resolved alias."""
    if not args:
        return command
    return " ".join([command, *args])


def expand_argv(argv: Sequence[str], aliases: Mapping[str, str]) -> list[str]:
    """
    Replace a leading alias in ``argv`` (program name excluded).

    Returns:
        The expanded argument list; ``argv`` unchanged when its first
        element is not an alias.

    Raises:
        AliasError: If resolution fails or the expansion is empty.
    """
    if not argv or argv[0] not in aliases:
        return list(argv)

    resolved = resolve_alias(argv[0], aliases)
    expanded = shlex.split(expand_alias_args(resolved, [shlex.quote(a) for a in argv[1:]]))
    if not expanded:
        raise AliasError("empty command after alias expansion")
    logger.debug(f"Expanded alias {argv[0]!r} to {expanded}")
    return expanded
