"""
Generation package for dpmm.

This module provides the data model shared by the generation store, the diff
engine and the reconciler: per-manager snapshots, the generations that group
them, and the interface every generation store implements.
"""

import abc
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple

from dpmm_py.errors import ConfigError
from dpmm_py.template import CommandTemplate


def _parse_packages(value: Any, owner: str) -> FrozenSet[str]:
    if value is None:
        return frozenset()
    if not isinstance(value, list) or not all(isinstance(p, str) for p in value):
        raise ConfigError(f"'packages' of {owner} must be a list of strings")
    return frozenset(p for p in value if p.strip())


def _optional_str(data: Dict[str, Any], key: str, owner: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str) or not value.split():
        raise ConfigError(f"'{key}' of {owner} must be a non-empty string")
    return value


@dataclass(frozen=True)
class Snapshot:
    """The desired state of one package manager at one point in time."""

    name: Optional[str]
    install: CommandTemplate
    uninstall: CommandTemplate
    packages: FrozenSet[str] = frozenset()
    update: Optional[str] = None
    upgrade: Optional[str] = None
    supports_batch_args: bool = True

    @property
    def label(self) -> str:
        """Name used in log lines; single-manager setups have no name."""
        return self.name if self.name is not None else "default"

    def with_packages(self, packages: Iterable[str]) -> "Snapshot":
        """Return a copy of this snapshot with a different package set."""
        return replace(self, packages=frozenset(packages))

    @classmethod
    def from_dict(
        cls, data: Dict[str, Any], name: Optional[str] = None
    ) -> "Snapshot":
        """Build a snapshot from a parsed config or generation record.

        *name* overrides the record's own ``name`` key, which is how manager
        files (named by their filename) are loaded.
        """
        if not isinstance(data, dict):
            raise ConfigError(f"Manager definition must be a mapping, got {data!r}")

        name = name if name is not None else data.get("name")
        if name is not None and not isinstance(name, str):
            raise ConfigError(f"Manager name must be a string, got {name!r}")
        owner = f"manager {name!r}" if name is not None else "manager"

        for key in ("install", "uninstall"):
            if key not in data:
                raise ConfigError(f"{owner} is missing required key '{key}'")

        batch = data.get("supports_batch_args", True)
        if not isinstance(batch, bool):
            raise ConfigError(f"'supports_batch_args' of {owner} must be true/false")

        try:
            install = CommandTemplate.parse(data["install"])
            uninstall = CommandTemplate.parse(data["uninstall"])
        except ConfigError as e:
            raise ConfigError(f"{owner}: {e}") from e

        return cls(
            name=name,
            install=install,
            uninstall=uninstall,
            packages=_parse_packages(data.get("packages"), owner),
            update=_optional_str(data, "update", owner),
            upgrade=_optional_str(data, "upgrade", owner),
            supports_batch_args=batch,
        )

    def to_dict(self, include_name: bool = True) -> Dict[str, Any]:
        """Serialize to a plain dict; packages are sorted for stable output."""
        data: Dict[str, Any] = {}
        if include_name and self.name is not None:
            data["name"] = self.name
        data["install"] = self.install.source
        data["uninstall"] = self.uninstall.source
        if self.update is not None:
            data["update"] = self.update
        if self.upgrade is not None:
            data["upgrade"] = self.upgrade
        data["supports_batch_args"] = self.supports_batch_args
        data["packages"] = sorted(self.packages)
        return data


@dataclass(frozen=True)
class Generation:
    """Snapshots of every configured manager, captured together."""

    managers: Tuple[Snapshot, ...]
    number: Optional[int] = field(default=None, compare=False)

    def find(self, name: Optional[str]) -> Optional[Snapshot]:
        """Return the manager whose identifier is *name*, if any."""
        for manager in self.managers:
            if manager.name == name:
                return manager
        return None

    @property
    def names(self) -> List[Optional[str]]:
        return [m.name for m in self.managers]

    def emptied(self) -> "Generation":
        """Return the "nothing installed yet" baseline for these managers."""
        return Generation(tuple(m.with_packages(()) for m in self.managers))

    @classmethod
    def from_dict(
        cls, data: Dict[str, Any], number: Optional[int] = None
    ) -> "Generation":
        if not isinstance(data, dict) or not isinstance(data.get("managers"), list):
            raise ConfigError("Generation record must contain a 'managers' list")
        managers = tuple(Snapshot.from_dict(m) for m in data["managers"])
        return cls(managers=managers, number=number)

    def to_dict(self) -> Dict[str, Any]:
        return {"managers": [m.to_dict() for m in self.managers]}


@dataclass(frozen=True)
class GenerationEntry:
    """A generation file as seen by ``list``; ``created`` is display-only."""

    number: int
    path: Path
    created: datetime


class BaseGenerationStore(abc.ABC):
    """Base class for generation stores."""

    @abc.abstractmethod
    def list(self) -> List[GenerationEntry]:
        """List every stored generation, newest (highest number) first."""
        pass

    @abc.abstractmethod
    def get(self, number: int) -> Optional[Generation]:
        """
        Load a generation by sequence number.

        Returns:
            The generation, or None if no generation has that number
        """
        pass

    @abc.abstractmethod
    def write(self, number: int, generation: Generation) -> Path:
        """Persist *generation* under *number*; never overwrites."""
        pass

    @abc.abstractmethod
    def delete(self, number: int) -> None:
        """Remove a stored generation other than the latest."""
        pass

    def latest(self) -> Optional[Generation]:
        """Return the generation with the highest sequence number."""
        return self.nth_from_latest(0)

    def nth_from_latest(self, k: int) -> Optional[Generation]:
        """Return the k-th most recent generation (0 is the latest)."""
        entries = self.list()
        if k < 0 or k >= len(entries):
            return None
        return self.get(entries[k].number)

    def next_number(self) -> int:
        entries = self.list()
        return entries[0].number + 1 if entries else 0

    def append(self, generation: Generation) -> int:
        """
        Store *generation* as the next generation.

        Only call this after a real state change; every call consumes a
        sequence number.

        Returns:
            The sequence number assigned to the new generation
        """
        number = self.next_number()
        self.write(number, generation)
        return number

    def initialize_if_empty(self, current: Generation) -> Optional[int]:
        """
        Write generation 0 as *current* with every package set emptied.

        Does nothing when any generation already exists.

        Returns:
            0 if the baseline was written, None otherwise
        """
        if self.list():
            return None
        self.write(0, current.emptied())
        return 0
