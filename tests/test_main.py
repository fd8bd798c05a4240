import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from laterem.dispatcher import CURRENT_BRANCH_QUERY
from laterem.errors import ProcessSpawnFailure
from laterem.main import __version__, app, build_request
from laterem.entities import Action, Target
from laterem.output import set_output
from laterem.runner import CommandResult, set_runner

runner = CliRunner()

REMOTE_QUERY = ("git", "remote", "show", "origin")


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset runner and output singletons after each test."""
    yield
    set_runner(None)  # type: ignore
    set_output(None)  # type: ignore


@pytest.fixture
def config_path(tmp_path: Path) -> str:
    """A settings path that does not exist, so defaults apply."""
    return str(tmp_path / "config.json")


class TestBuildRequest:
    """Test translating CLI tokens."""

    def test_defaults(self):
        request = build_request("whatever", None, [], "config.json")

        assert request.target is Target.REPOSITORY
        assert request.action is Action.RESET
        assert request.defaults is None
        assert request.path == "config.json"


class TestDockerCommands:
    """Test docker compose workflows through the CLI."""

    def test_up(self, fake_runner, config_path: str):
        set_runner(fake_runner)

        result = runner.invoke(app, ["docker", "up", "--config", config_path])

        assert result.exit_code == 0
        assert fake_runner.calls == [("docker", "compose", "up", "-d")]
        assert "successfully" in result.stdout

    def test_reset_short_aliases(self, fake_runner, config_path: str):
        set_runner(fake_runner)

        result = runner.invoke(app, ["d", "r", "-c", config_path])

        assert result.exit_code == 0
        assert fake_runner.calls == [
            ("docker", "compose", "down"),
            ("docker", "compose", "up", "-d"),
        ]

    def test_invalid_action(self, fake_runner, config_path: str):
        """Commit is not a docker workflow."""
        set_runner(fake_runner)

        result = runner.invoke(app, ["docker", "commit", "-c", config_path])

        assert result.exit_code == 2
        assert "not available" in result.stdout
        assert fake_runner.calls == []

    def test_failing_step(self, fake_runner, config_path: str):
        set_runner(fake_runner)
        fake_runner.outcomes[("docker", "compose", "down")] = CommandResult(
            1, "", "no configuration file provided"
        )

        result = runner.invoke(app, ["docker", "reset", "-c", config_path])

        assert result.exit_code == 1
        assert "Not run" in result.stdout
        assert ("docker", "compose", "up", "-d") not in fake_runner.calls

    def test_best_effort(self, fake_runner, config_path: str):
        set_runner(fake_runner)
        fake_runner.outcomes[("docker", "compose", "down")] = CommandResult(1, "", "")

        result = runner.invoke(
            app, ["docker", "reset", "--best-effort", "-c", config_path]
        )

        assert result.exit_code == 0
        assert ("docker", "compose", "up", "-d") in fake_runner.calls

    def test_dry_run(self, fake_runner, config_path: str):
        set_runner(fake_runner)

        result = runner.invoke(app, ["docker", "reset", "--dry-run", "-c", config_path])

        assert result.exit_code == 0
        assert fake_runner.calls == []
        assert "docker compose down" in result.stdout

    def test_docker_does_not_resolve_defaults(self, fake_runner, config_path: str):
        set_runner(fake_runner)

        runner.invoke(app, ["docker", "down", "-c", config_path])

        assert REMOTE_QUERY not in fake_runner.calls


class TestRepositoryCommands:
    """Test git workflows through the CLI."""

    def test_reset(self, fake_runner, config_path: str):
        set_runner(fake_runner)

        result = runner.invoke(app, ["repository", "-c", config_path])

        assert result.exit_code == 0
        assert fake_runner.calls[0] == REMOTE_QUERY
        assert fake_runner.calls[1][0] == "sed"
        assert fake_runner.calls[2:] == [
            CURRENT_BRANCH_QUERY,
            ("git", "add", "."),
            ("git", "stash"),
            ("git", "checkout", "main"),
            ("git", "pull", "origin", "main"),
            ("git", "checkout", "feature"),
            ("git", "stash", "pop"),
        ]

    def test_commit(self, fake_runner, config_path: str):
        set_runner(fake_runner)

        result = runner.invoke(
            app, ["r", "c", "-a", "fix", "--args", "bug", "-c", config_path]
        )

        assert result.exit_code == 0
        assert fake_runner.calls[-1] == ("git", "commit", "-m", "fix bug")

    def test_commit_without_message(self, fake_runner, config_path: str):
        set_runner(fake_runner)

        result = runner.invoke(app, ["r", "commit", "-c", config_path])

        assert result.exit_code == 2
        assert "commit needs a message" in result.stdout
        assert fake_runner.calls == []

    @pytest.mark.parametrize("action", ["up", "down"])
    def test_container_action_spawns_nothing(
        self, fake_runner, config_path: str, action: str
    ):
        """Invalid pairs are rejected before the remote is listed."""
        set_runner(fake_runner)

        result = runner.invoke(app, ["r", action, "-c", config_path])

        assert result.exit_code == 2
        assert "not available" in result.stdout
        assert fake_runner.calls == []

    def test_git_missing(self, fake_runner, config_path: str):
        """If the remote cannot be listed, no reset step is issued."""
        set_runner(fake_runner)
        fake_runner.outcomes[REMOTE_QUERY] = ProcessSpawnFailure(
            REMOTE_QUERY, "No such file or directory"
        )

        result = runner.invoke(app, ["r", "reset", "-c", config_path])

        assert result.exit_code == 1
        assert fake_runner.calls == [REMOTE_QUERY]
        assert "unable to start" in result.stdout

    def test_branch_from_settings(self, fake_runner, tmp_path: Path):
        set_runner(fake_runner)
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"branch": "develop", "stash_files": False}))

        result = runner.invoke(app, ["r", "reset", "-c", str(path)])

        assert result.exit_code == 0
        assert REMOTE_QUERY not in fake_runner.calls
        assert fake_runner.calls == [
            CURRENT_BRANCH_QUERY,
            ("git", "checkout", "develop"),
            ("git", "pull", "origin", "develop"),
            ("git", "checkout", "feature"),
        ]


class TestOptions:
    """Test the remaining CLI options."""

    def test_missing_target(self):
        result = runner.invoke(app, [])

        assert result.exit_code == 2
        assert "Specify a target" in result.stdout

    def test_version(self):
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_init_config(self, tmp_path: Path):
        path = tmp_path / "laterem" / "config.json"

        result = runner.invoke(app, ["--init-config", "-c", str(path)])

        assert result.exit_code == 0
        assert json.loads(path.read_text())["remote"] == "origin"

    def test_invalid_config(self, fake_runner, tmp_path: Path):
        set_runner(fake_runner)
        path = tmp_path / "config.json"
        path.write_text("{broken")

        result = runner.invoke(app, ["docker", "up", "-c", str(path)])

        assert result.exit_code == 2
        assert fake_runner.calls == []

    def test_init_config_keeps_existing_file(self, tmp_path: Path):
        path = tmp_path / "config.json"
        original = json.dumps({"branch": "develop", "remote": "upstream"})
        path.write_text(original)

        result = runner.invoke(app, ["--init-config", "-c", str(path)])

        assert result.exit_code == 2
        assert path.read_text() == original
