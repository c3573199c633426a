"""
Shared fixtures for the unit tests.
"""

import io
from pathlib import Path
from typing import Generator
from unittest.mock import MagicMock, patch

import pytest
from rich.console import Console

from dpmm_py.executor import CommandExecutor
from dpmm_py.generation.store import FileGenerationStore


@pytest.fixture
def output() -> io.StringIO:
    """Buffer that dry-run output is printed into."""
    return io.StringIO()


@pytest.fixture
def console(output: io.StringIO) -> Console:
    return Console(file=output, width=200)


@pytest.fixture
def mock_subprocess() -> Generator[MagicMock, None, None]:
    """Fixture to mock subprocess calls made by the executor."""
    with patch("dpmm_py.executor.subprocess") as mock_subprocess:
        mock_subprocess.run.return_value = MagicMock(returncode=0)
        yield mock_subprocess


@pytest.fixture
def executor(console: Console, mock_subprocess: MagicMock) -> CommandExecutor:
    return CommandExecutor(dry_run=False, console=console)


@pytest.fixture
def dry_executor(console: Console, mock_subprocess: MagicMock) -> CommandExecutor:
    return CommandExecutor(dry_run=True, console=console)


@pytest.fixture
def store(tmp_path: Path) -> FileGenerationStore:
    return FileGenerationStore(tmp_path / "cache")
