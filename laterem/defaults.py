"""Discovery of the repository conventions a run depends on."""

import logging
from pathlib import Path

from laterem.config import Settings
from laterem.entities import DefaultConfig
from laterem.runner import BufferedPipe, CommandRunner, Pipe, get_runner

LOG = logging.getLogger(__name__)

HEAD_BRANCH_FILTER = ["sed", "-n", "/HEAD branch/s/.*: //p"]


class DefaultResolver:
    """Resolves the remote's default branch and the fixed policy flags."""

    def __init__(
        self,
        runner: CommandRunner | None = None,
        pipe: Pipe | None = None,
        remote: str = "origin",
        cwd: Path | None = None,
    ):
        self.runner = runner or get_runner()
        self.pipe = pipe or BufferedPipe()
        self.remote = remote
        self.cwd = cwd

    def default_branch(self) -> str:
        """Return the branch the remote reports as ``HEAD branch``.

        An empty string means the remote could not be described, for
        example outside a checkout or without network access.
        """
        result = self.pipe.run(
            self.runner,
            ["git", "remote", "show", self.remote],
            HEAD_BRANCH_FILTER,
            cwd=self.cwd,
        )
        branch = result.stdout.replace("\n", "").strip()
        if not branch:
            LOG.warning("Could not determine the default branch of '%s'", self.remote)
        else:
            LOG.info("Default branch of '%s' is %s", self.remote, branch)
        return branch

    def resolve(self, settings: Settings | None = None) -> DefaultConfig:
        settings = settings or Settings(remote=self.remote)
        branch = settings.branch or self.default_branch()
        return DefaultConfig(
            branch=branch,
            stash_files=settings.stash_files,
            detach_container=settings.detach_container,
        )
