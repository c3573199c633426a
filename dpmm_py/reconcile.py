"""
Turns package diffs into install and uninstall commands.
"""

import logging
from dataclasses import dataclass
from typing import List

from dpmm_py.diff import Diff
from dpmm_py.executor import CommandExecutor
from dpmm_py.generation import Snapshot
from dpmm_py.template import CommandTemplate

logger = logging.getLogger("dpmm.reconcile")

UNINSTALL = "uninstall"
INSTALL = "install"

_HEADINGS = {UNINSTALL: "Uninstalls", INSTALL: "Installs"}


@dataclass(frozen=True)
class PlannedCommand:
    """One command the reconciler will run, in execution order."""

    action: str
    argv: List[str]

    @property
    def heading(self) -> str:
        return _HEADINGS[self.action]


def _commands_for(
    action: str,
    template: CommandTemplate,
    packages: List[str],
    batch: bool,
) -> List[PlannedCommand]:
    if not packages:
        return []
    if batch:
        return [PlannedCommand(action, template.render(packages))]
    return [PlannedCommand(action, template.render([p])) for p in packages]


def plan(manager: Snapshot, changes: Diff) -> List[PlannedCommand]:
    """
    Build the ordered command list for *changes* using *manager*'s templates.

    Removals come before additions. Package names are sorted so the same
    diff always yields the same commands.
    """
    return _commands_for(
        UNINSTALL,
        manager.uninstall,
        changes.sorted_removed(),
        manager.supports_batch_args,
    ) + _commands_for(
        INSTALL,
        manager.install,
        changes.sorted_added(),
        manager.supports_batch_args,
    )


class Reconciler:
    """Applies diffs for one manager at a time through a ``CommandExecutor``."""

    def __init__(self, executor: CommandExecutor):
        self.executor = executor

    def reconcile(self, manager: Snapshot, changes: Diff) -> bool:
        """
        Run (or render, in dry-run mode) the commands for *changes*.

        Returns:
            True if anything was added or removed, False for an empty diff

        Raises:
            ExecutionError: On the first failing command; later commands for
                this manager are not run
        """
        if changes.is_empty:
            logger.info(f"Nothing to resolve with {manager.label}!")
            return False

        logger.info(
            f"Resolving {manager.label}: {len(changes.removed)} to remove, "
            f"{len(changes.added)} to add"
        )
        for command in plan(manager, changes):
            self.executor.execute(command.argv, command.heading)
        return True
