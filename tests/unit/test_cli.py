"""
Tests for the CLI module.
"""

from pathlib import Path
from typing import Generator, List
from unittest.mock import MagicMock, patch

import orjson
import pytest
from typer.testing import CliRunner

from dpmm_py.cli import app

APT = """\
install: apt-get install $
uninstall: apt-get remove $
update: apt-get update
upgrade: apt-get upgrade -y
supports_batch_args: true
packages:
  - vim
  - git
"""


@pytest.fixture
def runner() -> CliRunner:
    """Fixture to create a CLI runner."""
    return CliRunner()


@pytest.fixture
def dirs(tmp_path: Path) -> List[str]:
    """Config and cache directory options, with an apt-only config."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "dpmm.yaml").write_text("managers: [apt]\n")
    (config_dir / "apt.yaml").write_text(APT)
    return ["--config-dir", str(config_dir), "--cache-dir", str(tmp_path / "cache")]


@pytest.fixture
def mock_run() -> Generator[MagicMock, None, None]:
    """Fixture to mock subprocess.run in the executor."""
    with patch("dpmm_py.executor.subprocess") as mock_subprocess:
        mock_subprocess.run.return_value = MagicMock(returncode=0)
        yield mock_subprocess.run


def test_version(runner: CliRunner) -> None:
    """Test the version command."""
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "dpmm version" in result.stdout


def test_switch_command(
    runner: CliRunner, dirs: List[str], mock_run: MagicMock, tmp_path: Path
) -> None:
    """Test the switch command records generation 1."""
    result = runner.invoke(app, dirs + ["switch"])

    assert result.exit_code == 0
    assert "Switched to generation 1" in result.stdout
    mock_run.assert_called_once_with(["apt-get", "install", "git", "vim"], check=False)

    data = orjson.loads((tmp_path / "cache" / "generation_1.json").read_bytes())
    assert data["managers"][0]["packages"] == ["git", "vim"]


def test_switch_dry_run(
    runner: CliRunner, dirs: List[str], mock_run: MagicMock, tmp_path: Path
) -> None:
    """Test --dry-run prints the install and writes nothing."""
    result = runner.invoke(app, ["--dry-run"] + dirs + ["switch"])

    assert result.exit_code == 0
    assert "Installs:" in result.stdout
    assert "apt-get install git vim" in result.stdout
    assert "Uninstalls:" not in result.stdout
    assert "writes to generation_1.json" in result.stdout
    mock_run.assert_not_called()
    assert not (tmp_path / "cache").exists()


def test_switch_command_failure(
    runner: CliRunner, dirs: List[str], mock_run: MagicMock, tmp_path: Path
) -> None:
    """A failing install exits 1 and records no generation past the baseline."""
    mock_run.return_value = MagicMock(returncode=100)
    result = runner.invoke(app, dirs + ["switch"])

    assert result.exit_code == 1
    assert "Switch failed" in result.stdout
    assert not (tmp_path / "cache" / "generation_1.json").exists()


def test_missing_config(runner: CliRunner, tmp_path: Path) -> None:
    """Test error handling when no configuration exists."""
    result = runner.invoke(
        app, ["--config-dir", str(tmp_path / "nope"), "--cache-dir", str(tmp_path)]
        + ["switch"],
    )
    assert result.exit_code == 1
    assert "not found" in result.stdout


def test_empty_config_is_clean_exit(
    runner: CliRunner, tmp_path: Path, mock_run: MagicMock
) -> None:
    (tmp_path / "dpmm.yaml").write_text("")
    result = runner.invoke(
        app, ["--config-dir", str(tmp_path), "--cache-dir", str(tmp_path / "c")]
        + ["switch"],
    )
    assert result.exit_code == 0
    assert "Empty dpmm.yaml" in result.stdout
    mock_run.assert_not_called()
    assert not (tmp_path / "c").exists()


def test_list_command(runner: CliRunner, dirs: List[str], mock_run: MagicMock) -> None:
    """Test the list command shows generations newest first."""
    runner.invoke(app, dirs + ["switch"])
    result = runner.invoke(app, dirs + ["list"])

    assert result.exit_code == 0
    assert "generation_1" in result.stdout
    assert "generation_0" in result.stdout
    assert result.stdout.index("generation_1") < result.stdout.index("generation_0")


def test_list_command_json(
    runner: CliRunner, dirs: List[str], mock_run: MagicMock
) -> None:
    """Test the list command with JSON output."""
    runner.invoke(app, dirs + ["switch"])
    result = runner.invoke(app, dirs + ["list", "--json"])

    assert result.exit_code == 0
    assert '"generation": 1' in result.stdout
    assert '"generation": 0' in result.stdout


def test_list_without_config(runner: CliRunner, tmp_path: Path) -> None:
    """list only reads the store, so it works without a config."""
    result = runner.invoke(
        app, ["--config-dir", str(tmp_path / "nope"), "--cache-dir", str(tmp_path)]
        + ["list"],
    )
    assert result.exit_code == 0


def test_rollback_command(
    runner: CliRunner, dirs: List[str], mock_run: MagicMock, tmp_path: Path
) -> None:
    """Rolling back after the first switch returns to the empty baseline."""
    runner.invoke(app, dirs + ["switch"])
    mock_run.reset_mock()

    result = runner.invoke(app, dirs + ["rollback"])

    assert result.exit_code == 0
    assert "Rolled back to generation 0" in result.stdout
    mock_run.assert_called_once_with(["apt-get", "remove", "git", "vim"], check=False)
    assert "packages: []" in (tmp_path / "config" / "apt.yaml").read_text()


def test_rollback_unknown_generation(
    runner: CliRunner, dirs: List[str], mock_run: MagicMock
) -> None:
    runner.invoke(app, dirs + ["switch"])
    mock_run.reset_mock()

    result = runner.invoke(app, dirs + ["rollback", "42"])
    assert result.exit_code == 1
    assert "Generation 42 does not exist" in result.stdout
    mock_run.assert_not_called()


def test_update_and_upgrade(
    runner: CliRunner, dirs: List[str], mock_run: MagicMock
) -> None:
    assert runner.invoke(app, dirs + ["update", "all"]).exit_code == 0
    assert runner.invoke(app, dirs + ["upgrade", "apt"]).exit_code == 0
    assert [c.args[0] for c in mock_run.call_args_list] == [
        ["apt-get", "update"],
        ["apt-get", "upgrade", "-y"],
    ]


def test_update_unknown_manager(
    runner: CliRunner, dirs: List[str], mock_run: MagicMock
) -> None:
    result = runner.invoke(app, dirs + ["update", "pacman"])
    assert result.exit_code == 1
    assert "pacman" in result.stdout
    mock_run.assert_not_called()


def test_gc_command(
    runner: CliRunner, dirs: List[str], mock_run: MagicMock, tmp_path: Path
) -> None:
    runner.invoke(app, dirs + ["switch"])
    result = runner.invoke(app, dirs + ["gc", "--keep", "1"])

    assert result.exit_code == 0
    assert "Deleted 1 generations" in result.stdout
    assert not (tmp_path / "cache" / "generation_0.json").exists()
    assert (tmp_path / "cache" / "generation_1.json").exists()
