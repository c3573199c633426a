"""
Filesystem generation store for dpmm.

Generations are stored as ``generation_<n>.json`` files inside the cache
directory. The number in the filename is the only ordering key.
"""

import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import orjson

from dpmm_py.errors import ConfigError
from dpmm_py.generation import BaseGenerationStore, Generation, GenerationEntry

logger = logging.getLogger("dpmm.generation.store")

PREFIX = "generation_"
SUFFIX = ".json"


def parse_generation_number(filename: str) -> Optional[int]:
    """Extract the generation number from *filename*.

    Returns None for anything that is not ``generation_<non-negative int>.json``
    as written by ``generation_filename``; ``generation_02.json`` is foreign.
    """
    if not (filename.startswith(PREFIX) and filename.endswith(SUFFIX)):
        return None
    stem = filename[len(PREFIX) : len(filename) - len(SUFFIX)]
    if not stem.isascii() or not stem.isdigit():
        return None
    number = int(stem)
    if generation_filename(number) != filename:
        return None
    return number


def generation_filename(number: int) -> str:
    return f"{PREFIX}{number}{SUFFIX}"


class FileGenerationStore(BaseGenerationStore):
    """Generation store backed by one JSON file per generation."""

    def __init__(self, cache_dir: Path):
        """
        Initialize the store.

        Args:
            cache_dir: Directory holding the generation files. Created on the
                first write if it does not exist.
        """
        self.cache_dir = cache_dir

    def path_for(self, number: int) -> Path:
        return self.cache_dir / generation_filename(number)

    def list(self) -> List[GenerationEntry]:
        if not self.cache_dir.is_dir():
            return []

        entries = []
        for path in self.cache_dir.iterdir():
            number = parse_generation_number(path.name)
            if number is None or not path.is_file():
                logger.debug(f"Ignoring foreign file in cache: {path.name}")
                continue
            created = datetime.fromtimestamp(path.stat().st_mtime)
            entries.append(GenerationEntry(number=number, path=path, created=created))

        entries.sort(key=lambda e: e.number, reverse=True)
        return entries

    def get(self, number: int) -> Optional[Generation]:
        path = self.path_for(number)
        if not path.is_file():
            return None
        try:
            data = orjson.loads(path.read_bytes())
        except OSError as e:
            raise ConfigError(f"Failed to read generation {number} ({path}): {e}") from e
        except orjson.JSONDecodeError as e:
            raise ConfigError(f"Generation {number} ({path}) is corrupt: {e}") from e

        try:
            return Generation.from_dict(data, number=number)
        except ConfigError as e:
            raise ConfigError(f"Generation {number} ({path}) is invalid: {e}") from e

    def write(self, number: int, generation: Generation) -> Path:
        path = self.path_for(number)
        if path.exists():
            raise ConfigError(f"Refusing to overwrite existing generation {number}")

        self.cache_dir.mkdir(parents=True, exist_ok=True)
        payload = serialize_generation(generation)

        # Write to a temp file first so a crash never leaves a half-written
        # generation with a valid name.
        fd, tmp_name = tempfile.mkstemp(prefix=".generation-", dir=self.cache_dir)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
            os.replace(tmp_name, path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise ConfigError(f"Failed to write generation {number}: {e}") from e

        logger.info(f"Wrote generation {number} to {path}")
        return path

    def delete(self, number: int) -> None:
        """
        Remove generation *number*; a missing file is not an error.

        Raises:
            ConfigError: For the latest generation, whose number the next
                append would otherwise reuse
        """
        entries = self.list()
        if entries and entries[0].number == number:
            raise ConfigError(f"Refusing to delete the latest generation {number}")

        path = self.path_for(number)
        try:
            path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise ConfigError(f"Failed to delete generation {number}: {e}") from e
        logger.info(f"Deleted generation {number}")


def serialize_generation(generation: Generation) -> bytes:
    """Render *generation* exactly as it is stored on disk."""
    return orjson.dumps(generation.to_dict(), option=orjson.OPT_INDENT_2)
