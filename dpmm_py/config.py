"""
Configuration file support for dpmm.

Loads the desired package state from ``dpmm.yaml`` in the config directory
(``$XDG_CONFIG_HOME/dpmm`` or ``~/.config/dpmm`` by default). The index file
either lists manager names, each defined in its own ``<name>.yaml``, or
defines a single unnamed manager inline.
"""

import logging
import os
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from dpmm_py.errors import ConfigError
from dpmm_py.generation import Generation, Snapshot
from dpmm_py.platform import cache_home, config_home

logger = logging.getLogger("dpmm.config")

INDEX_FILE = "dpmm.yaml"

# Keys of dpmm.yaml that are settings rather than manager definitions.
SETTINGS_KEYS = ("removed_managers", "retention")


def default_config_dir() -> Path:
    """Return the configuration directory.

    ``$DPMM_CONFIG_DIR`` wins, then the platform config home plus ``dpmm``.
    """
    override = os.environ.get("DPMM_CONFIG_DIR")
    if override:
        return Path(override).expanduser()
    return config_home() / "dpmm"


def default_cache_dir() -> Path:
    """Return the directory generations are stored in.

    ``$DPMM_CACHE_DIR`` wins, then the platform cache home plus ``dpmm``.
    """
    override = os.environ.get("DPMM_CACHE_DIR")
    if override:
        return Path(override).expanduser()
    return cache_home() / "dpmm"


class RemovedManagerPolicy(Enum):
    """What a switch does with managers that vanished from the config."""

    DROP = "drop"
    RETAIN = "retain"


@dataclass
class RetentionConfig:
    """Generation retention settings; ``None`` means keep everything."""

    keep_last: Optional[int] = None


def _read_yaml(path: Path) -> Any:
    try:
        with open(path, "r") as f:
            return yaml.safe_load(f.read())
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {path}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse config file {path}: {e}") from e


def _validate_manager_names(names: Any) -> List[str]:
    if not isinstance(names, list) or not all(isinstance(n, str) for n in names):
        raise ConfigError("'managers' must be a list of manager names")
    seen = set()
    for name in names:
        if not name or "/" in name or "\\" in name or name.startswith("."):
            raise ConfigError(f"Invalid manager name: {name!r}")
        if name in seen:
            raise ConfigError(f"Manager {name!r} is listed more than once")
        seen.add(name)
    return names


@dataclass
class DpmmConfig:
    """Desired state for one run, as loaded from the config directory."""

    managers: List[Snapshot] = field(default_factory=list)
    single: bool = False
    empty: bool = False
    removed_managers: RemovedManagerPolicy = RemovedManagerPolicy.DROP
    retention: RetentionConfig = field(default_factory=RetentionConfig)
    settings: Dict[str, Any] = field(default_factory=dict)

    @property
    def generation(self) -> Generation:
        """The desired state as an (unnumbered) generation."""
        return Generation(tuple(self.managers))

    @classmethod
    def from_dict(cls, data: Dict[str, Any], config_dir: Path) -> "DpmmConfig":
        """Construct a ``DpmmConfig`` from a parsed ``dpmm.yaml``.

        Manager files referenced by name are read from *config_dir*.
        """
        if not isinstance(data, dict):
            raise ConfigError(f"{INDEX_FILE} must be a mapping")

        settings = {k: data[k] for k in SETTINGS_KEYS if k in data}

        policy_value = data.get("removed_managers", RemovedManagerPolicy.DROP.value)
        try:
            policy = RemovedManagerPolicy(policy_value)
        except ValueError as e:
            raise ConfigError(
                f"'removed_managers' must be 'drop' or 'retain', got {policy_value!r}"
            ) from e

        retention_data = data.get("retention") or {}
        if not isinstance(retention_data, dict):
            raise ConfigError("'retention' must be a mapping")
        keep_last = retention_data.get("keep_last")
        if keep_last is not None and (
            isinstance(keep_last, bool) or not isinstance(keep_last, int) or keep_last < 1
        ):
            raise ConfigError("'retention.keep_last' must be a positive integer")

        if "managers" in data:
            managers = []
            for name in _validate_manager_names(data["managers"]):
                manager_file = config_dir / f"{name}.yaml"
                manager_data = _read_yaml(manager_file)
                if manager_data is None:
                    raise ConfigError(f"Manager file {manager_file} is empty")
                logger.debug(f"Loaded manager {name} from {manager_file}")
                managers.append(Snapshot.from_dict(manager_data, name=name))
            single = False
        else:
            manager_data = {k: v for k, v in data.items() if k not in SETTINGS_KEYS}
            managers = [Snapshot.from_dict(manager_data)]
            single = True

        return cls(
            managers=managers,
            single=single,
            removed_managers=policy,
            retention=RetentionConfig(keep_last=keep_last),
            settings=settings,
        )

    @classmethod
    def load(cls, config_dir: Path) -> "DpmmConfig":
        """Main entry point - load the configuration in *config_dir*.

        An empty ``dpmm.yaml`` yields a config with ``empty`` set; a missing
        one raises ``ConfigError``.
        """
        path = config_dir / INDEX_FILE
        data = _read_yaml(path)
        if data is None:
            logger.info(f"Empty {INDEX_FILE}")
            return cls(empty=True)
        return cls.from_dict(data, config_dir)


class ConfigWriter:
    """Rewrites the live configuration, one file at a time.

    There is no atomicity across files: if writing the third manager fails,
    the first two stay rewritten.
    """

    def __init__(self, config_dir: Path):
        self.config_dir = config_dir

    def manager_document(self, manager: Snapshot) -> str:
        return yaml.safe_dump(manager.to_dict(include_name=False), sort_keys=False)

    def index_document(
        self, generation: Generation, single: bool, settings: Dict[str, Any]
    ) -> str:
        """Render ``dpmm.yaml`` for *generation*, keeping existing *settings*."""
        if single:
            data = generation.managers[0].to_dict(include_name=False)
        else:
            data = {"managers": [m.name for m in generation.managers]}
        data.update(settings)
        return yaml.safe_dump(data, sort_keys=False)

    def manager_files(self, generation: Generation) -> Dict[str, str]:
        """Map each named manager's filename to its rendered contents.

        A single unnamed manager lives inline in the index and has no file.

        Raises:
            ConfigError: If a name could not have come from a manager file,
                such as '../x' or a missing name next to named managers
        """
        if generation.names == [None]:
            return {}
        _validate_manager_names(generation.names)
        return {
            f"{m.name}.yaml": self.manager_document(m)
            for m in generation.managers
        }

    def write(self, filename: str, text: str) -> Path:
        """Atomically replace *filename* in the config directory."""
        path = self.config_dir / filename
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{filename}-", dir=self.config_dir)
        except OSError as e:
            raise ConfigError(f"Failed to write {path}: {e}") from e
        try:
            with os.fdopen(fd, "w") as f:
                f.write(text)
            os.replace(tmp_name, path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise ConfigError(f"Failed to write {path}: {e}") from e
        logger.info(f"Wrote {path}")
        return path
