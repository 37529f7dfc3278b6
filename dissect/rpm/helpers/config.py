from __future__ import annotations

import ast
import importlib.machinery
import importlib.util
from pathlib import Path
from typing import TYPE_CHECKING, Any

from dissect.rpm.exceptions import ConfigError
from dissect.rpm.helpers.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator
    from types import ModuleType

log = get_logger(__name__)

CONFIG_NAME = ".rpmcfg.py"

DEFAULTS = {
    "SIGNING_KEY": None,
    "VERIFYING_KEY": None,
    "BUFFER_SIZE": 32768,
}

KEY_FILE_SETTINGS = ("SIGNING_KEY", "VERIFYING_KEY")


def load(paths: Iterable[Path | str | None] | Path | str | None) -> ModuleType:
    """Load the first ``.rpmcfg.py`` found in or above the given path(s).

    The file is never executed, only plain constant assignments are read from it. Settings that are not assigned
    keep their value from :data:`DEFAULTS`. Relative key file paths are resolved against the directory of the config
    file.

    Raises:
        ConfigError: If a known setting has a value of the wrong kind.
    """
    if isinstance(paths, (Path, str)):
        paths = [paths]

    config = importlib.util.module_from_spec(importlib.machinery.ModuleSpec("config", None))
    config.__dict__.update(DEFAULTS)

    config_file = _find_config_file(paths or [])
    if config_file is None:
        return config

    log.debug("Loading config from %s", config_file)
    for name, value in _constant_assignments(config_file.read_bytes()):
        config.__dict__[name] = _check_setting(config_file, name, value)

    return config


def _constant_assignments(code: bytes) -> Iterator[tuple[str, Any]]:
    for statement in ast.parse(code).body:
        if not isinstance(statement, ast.Assign) or not isinstance(statement.value, ast.Constant):
            log.debug("Skipping config statement on line %d, not a constant assignment", statement.lineno)
            continue

        if len(statement.targets) != 1 or not isinstance(statement.targets[0], ast.Name):
            log.debug("Skipping config assignment on line %d, not a single name", statement.lineno)
            continue

        yield statement.targets[0].id, statement.value.value


def _check_setting(config_file: Path, name: str, value: Any) -> Any:
    if name not in DEFAULTS:
        log.warning("Unknown setting %s in %s", name, config_file)
        return value

    if name == "BUFFER_SIZE":
        if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
            raise ConfigError(f"BUFFER_SIZE in {config_file} must be a positive integer, got {value!r}")
        return value

    if value is None:
        return None

    if not isinstance(value, str):
        raise ConfigError(f"{name} in {config_file} must be a path, got {value!r}")

    # Absolute paths are left as-is by joinpath
    return str(config_file.parent.joinpath(value))


def _find_config_file(paths: Iterable[Path | str | None]) -> Path | None:
    """Return the first config file in, or in a parent directory of, one of ``paths``.

    A path may point to a file, such as the package being processed, and parts of it may not exist. The root
    directory is never searched.
    """
    for path in filter(None, paths):
        start = Path(path).absolute()
        if start.is_file():
            start = start.parent

        for directory in (start, *start.parents):
            if directory == directory.parent:
                break

            config_file = directory.joinpath(CONFIG_NAME)
            if config_file.is_file():
                return config_file

    return None
