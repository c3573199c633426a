"""
Builders for snapshots and generations used across the unit tests.
"""

from typing import Iterable, Optional

from dpmm_py.generation import Generation, Snapshot
from dpmm_py.template import CommandTemplate


def make_snapshot(
    name: Optional[str] = "apt",
    packages: Iterable[str] = (),
    batch: bool = True,
    update: Optional[str] = None,
    upgrade: Optional[str] = None,
) -> Snapshot:
    """Build a snapshot with apt-style templates."""
    return Snapshot(
        name=name,
        install=CommandTemplate.parse("apt-get install $"),
        uninstall=CommandTemplate.parse("apt-get remove $"),
        packages=frozenset(packages),
        update=update,
        upgrade=upgrade,
        supports_batch_args=batch,
    )


def make_generation(*managers: Snapshot) -> Generation:
    return Generation(tuple(managers))
