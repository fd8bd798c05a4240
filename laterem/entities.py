"""Targets, actions and the records passed through a run."""

from __future__ import annotations

import shlex
from dataclasses import dataclass, field
from enum import Enum


class Target(Enum):
    """The domain a workflow applies to."""

    DOCKER = "docker"
    REPOSITORY = "repository"

    @classmethod
    def parse(cls, value: str | None) -> "Target":
        """Map a CLI token to a target, falling back to the repository."""
        aliases = {
            "d": cls.DOCKER,
            "docker": cls.DOCKER,
            "r": cls.REPOSITORY,
            "repository": cls.REPOSITORY,
        }
        return aliases.get(value or "", cls.REPOSITORY)

    def __str__(self) -> str:
        return self.value


class Action(Enum):
    """The named workflow requested within a target."""

    RESET = "reset"
    DOWN = "down"
    UP = "up"
    COMMIT = "commit"
    PUSH = "push"
    PULL = "pull"

    @classmethod
    def parse(cls, value: str | None) -> "Action":
        """Map a CLI token to an action, falling back to reset."""
        aliases = {
            "r": cls.RESET,
            "reset": cls.RESET,
            "d": cls.DOWN,
            "down": cls.DOWN,
            "u": cls.UP,
            "up": cls.UP,
            "c": cls.COMMIT,
            "commit": cls.COMMIT,
            "push": cls.PUSH,
            "pull": cls.PULL,
        }
        return aliases.get(value or "", cls.RESET)

    def __str__(self) -> str:
        return self.value


@dataclass
class DefaultConfig:
    """Repository conventions assumed by the workflows."""

    branch: str
    stash_files: bool = True
    detach_container: bool = True


@dataclass
class RunRequest:
    """Everything a single invocation asks the engine to do."""

    path: str
    target: Target
    action: Action
    defaults: DefaultConfig | None = None
    arguments: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Step:
    """One external command invocation within a workflow."""

    name: str
    description: str
    command: tuple[str, ...]

    @property
    def executable(self) -> str:
        return self.command[0]

    def __str__(self) -> str:
        return shlex.join(self.command)
