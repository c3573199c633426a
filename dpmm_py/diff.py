"""
Package set differences between two snapshots of the same manager.
"""

from dataclasses import dataclass
from typing import AbstractSet, FrozenSet, List


@dataclass(frozen=True)
class Diff:
    """Packages to add and remove; the two sets never overlap."""

    added: FrozenSet[str]
    removed: FrozenSet[str]

    @property
    def is_empty(self) -> bool:
        return not self.added and not self.removed

    def sorted_added(self) -> List[str]:
        return sorted(self.added)

    def sorted_removed(self) -> List[str]:
        return sorted(self.removed)


def diff(old: AbstractSet[str], new: AbstractSet[str]) -> Diff:
    """Return what must be added to and removed from *old* to reach *new*."""
    old_set = frozenset(old)
    new_set = frozenset(new)
    return Diff(added=new_set - old_set, removed=old_set - new_set)
