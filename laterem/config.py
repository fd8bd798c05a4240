"""
Settings for laterem runs.

Settings live in a small JSON file. A missing file is not an error: every
field has a default matching the conventions laterem assumes out of the
box (stash before switching branches, detach started containers, stop on
the first failing step).
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Optional

from laterem.errors import ConfigError

LOG = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "~/.config/laterem/config.json"


@dataclass
class Settings:
    """User overrides for the workflow conventions."""

    branch: Optional[str] = None
    remote: str = "origin"
    stash_files: bool = True
    detach_container: bool = True
    strict: bool = True
    compose_command: list[str] = field(default_factory=lambda: ["docker", "compose"])


_FIELD_TYPES = {
    "branch": (str, type(None)),
    "remote": (str,),
    "stash_files": (bool,),
    "detach_container": (bool,),
    "strict": (bool,),
    "compose_command": (list,),
}


def expand_path(path: str | os.PathLike[str]) -> Path:
    """Expand ``~`` and environment variables such as ``$HOME``."""
    return Path(os.path.expandvars(os.path.expanduser(str(path))))


def load_settings(path: str | os.PathLike[str] = DEFAULT_CONFIG_PATH) -> Settings:
    """Read settings from ``path``, falling back to defaults if it is absent."""
    config_path = expand_path(path)
    if not config_path.exists():
        LOG.debug("No settings file at %s, using defaults", config_path)
        return Settings()

    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(str(config_path), str(exc)) from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(str(config_path), f"not valid JSON ({exc.msg})") from exc

    if not isinstance(raw, dict):
        raise ConfigError(str(config_path), "expected a JSON object")

    known = {f.name for f in fields(Settings)}
    values = {}
    for key, value in raw.items():
        if key not in known:
            LOG.warning("Ignoring unknown setting '%s' in %s", key, config_path)
            continue
        if not isinstance(value, _FIELD_TYPES[key]):
            raise ConfigError(str(config_path), f"'{key}' has the wrong type")
        values[key] = value

    command = values.get("compose_command")
    if command is not None and (
        not command or not all(isinstance(part, str) for part in command)
    ):
        raise ConfigError(
            str(config_path), "'compose_command' must be a non-empty list of strings"
        )

    LOG.info("Loaded settings from %s", config_path)
    return Settings(**values)


def write_example(path: str | os.PathLike[str] = DEFAULT_CONFIG_PATH) -> Path:
    """Write the default settings to ``path`` and return where they went.

    An existing file is never replaced.
    """
    config_path = expand_path(path)
    if config_path.exists():
        raise ConfigError(str(config_path), "already exists")
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(
        json.dumps(asdict(Settings()), indent=2) + "\n", encoding="utf-8"
    )
    return config_path
