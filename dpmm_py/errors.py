"""
Error types raised by the dpmm core.

The core never retries; errors propagate to the CLI, which reports them and
exits non-zero.
"""

from typing import List, Optional


class DpmmError(Exception):
    """Base class for all dpmm errors."""


class ConfigError(DpmmError):
    """Missing, unreadable or malformed configuration or generation file."""


class GenerationLookupError(DpmmError, LookupError):
    """A requested generation or manager does not exist."""


class ExecutionError(DpmmError):
    """A command failed to launch or exited with a non-zero status."""

    def __init__(
        self, message: str, argv: List[str], returncode: Optional[int] = None
    ):
        super().__init__(message)
        self.argv = argv
        self.returncode = returncode
