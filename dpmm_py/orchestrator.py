"""
Top-level dpmm workflows: switch, rollback, list, update, upgrade and gc.

Each workflow runs to completion in one invocation. Errors from the store, the
config loader or the executor propagate unchanged to the caller.
"""

import logging
from typing import Dict, List, Optional

from dpmm_py.config import INDEX_FILE, ConfigWriter, DpmmConfig, RemovedManagerPolicy
from dpmm_py.diff import diff
from dpmm_py.errors import ConfigError, GenerationLookupError
from dpmm_py.executor import CommandExecutor
from dpmm_py.generation import BaseGenerationStore, Generation, GenerationEntry
from dpmm_py.generation.store import (
    PREFIX,
    SUFFIX,
    generation_filename,
    serialize_generation,
)
from dpmm_py.reconcile import Reconciler
from dpmm_py.retention import RetentionEvaluator, RetentionPolicy
from dpmm_py.template import split_verbatim

logger = logging.getLogger("dpmm.orchestrator")

ALL_MANAGERS = "all"


def parse_generation_target(target: str) -> int:
    """Turn ``"3"``, ``"generation_3"`` or ``"generation_3.json"`` into 3."""
    value = target.strip()
    if value.endswith(SUFFIX):
        value = value[: -len(SUFFIX)]
    if value.startswith(PREFIX):
        value = value[len(PREFIX) :]
    if not value.isascii() or not value.isdigit():
        raise GenerationLookupError(f"Not a generation number: {target!r}")
    return int(value)


class Orchestrator:
    """Wires config, generation store, reconciler and executor together."""

    def __init__(
        self,
        store: BaseGenerationStore,
        executor: CommandExecutor,
        config: Optional[DpmmConfig] = None,
        writer: Optional[ConfigWriter] = None,
    ):
        self.store = store
        self.executor = executor
        self.config = config
        self.writer = writer
        self.reconciler = Reconciler(executor)

    @property
    def dry_run(self) -> bool:
        return self.executor.dry_run

    def _require_config(self) -> DpmmConfig:
        if self.config is None:
            raise ConfigError("No configuration loaded")
        return self.config

    def latest_or_baseline(self) -> Generation:
        """Return the latest generation, creating generation 0 on first run.

        In dry-run mode the baseline is only built in memory.
        """
        latest = self.store.latest()
        if latest is not None:
            return latest

        current = self._require_config().generation
        if self.dry_run:
            logger.info("No generations yet, using an empty baseline (not written)")
        else:
            self.store.initialize_if_empty(current)
            logger.info("Created baseline generation 0")
        return Generation(current.emptied().managers, number=0)

    def _reconcile_against(self, target: Generation, latest: Generation) -> bool:
        changed = False
        for manager in target.managers:
            previous = latest.find(manager.name)
            if previous is None:
                logger.info(f"{manager.label} is not in generation {latest.number}")
                changes = diff(frozenset(), manager.packages)
            else:
                changes = diff(previous.packages, manager.packages)
            changed = self.reconciler.reconcile(manager, changes) or changed
        return changed

    def switch(self) -> Optional[int]:
        """
        Bring every configured manager to its configured package set.

        Returns:
            Number of the generation written, or None when nothing changed or
            in dry-run mode
        """
        config = self._require_config()
        latest = self.latest_or_baseline()
        current = config.generation

        changed = self._reconcile_against(current, latest)
        if not changed:
            logger.info("Nothing changed, no new generation")
            return None

        managers = list(current.managers)
        configured = set(current.names)
        for old in latest.managers:
            if old.name in configured:
                continue
            if config.removed_managers is RemovedManagerPolicy.RETAIN:
                logger.info(f"Keeping unconfigured manager {old.label} in generation")
                managers.append(old)
            else:
                logger.info(f"Dropping unconfigured manager {old.label}")
        new_generation = Generation(tuple(managers))

        if self.dry_run:
            # The baseline may exist only in memory here, so count from it.
            number = (latest.number or 0) + 1
            self.executor.show(
                f"writes to {generation_filename(number)}",
                serialize_generation(new_generation).decode(),
            )
            return None

        return self.store.append(new_generation)

    def resolve_rollback_target(self, target: Optional[str]) -> Generation:
        """Load the generation a rollback should restore.

        Without *target*, this is the generation just before the latest one.
        """
        if target is None:
            generation = self.store.nth_from_latest(1)
            if generation is None:
                raise GenerationLookupError("No previous generation to roll back to")
            return generation

        number = parse_generation_target(target)
        generation = self.store.get(number)
        if generation is None:
            raise GenerationLookupError(f"Generation {number} does not exist")
        return generation

    def rollback(self, target: Optional[str] = None) -> Generation:
        """
        Restore the package state of an earlier generation.

        Packages are reconciled against the latest generation, then the target
        generation is written back as the live configuration. No generation is
        appended; the next switch records one.

        Returns:
            The generation rolled back to
        """
        config = self._require_config()
        writer = self.writer
        if writer is None:
            raise ConfigError("No config writer available for rollback")

        # Lookups and validation run before anything on disk changes.
        generation = self.resolve_rollback_target(target)
        single = len(generation.managers) == 1 and generation.managers[0].name is None
        files = writer.manager_files(generation)
        index = writer.index_document(generation, single, config.settings)

        latest = self.latest_or_baseline()
        logger.info(
            f"Rolling back from generation {latest.number} to {generation.number}"
        )

        self._reconcile_against(generation, latest)
        self._write_live_config(writer, files, index)
        return generation

    def _write_live_config(
        self, writer: ConfigWriter, files: Dict[str, str], index: str
    ) -> None:
        if self.dry_run:
            for filename, text in files.items():
                self.executor.show(f"writes to {filename}", text)
            self.executor.show(f"writes to {INDEX_FILE}", index)
            return

        failed = []
        for filename, text in files.items():
            try:
                writer.write(filename, text)
            except ConfigError as e:
                logger.error(str(e))
                failed.append(filename)
        if failed:
            raise ConfigError(
                f"Failed to write {', '.join(failed)}; {INDEX_FILE} left unchanged"
            )
        writer.write(INDEX_FILE, index)

    def list_generations(self) -> List[GenerationEntry]:
        """Return stored generations, newest first."""
        return self.store.list()

    def _maintain(self, selector: str, attr: str, heading: str) -> int:
        managers = self._require_config().managers
        if selector != ALL_MANAGERS:
            managers = [m for m in managers if m.label == selector]
            if not managers:
                raise GenerationLookupError(f"No manager named {selector!r}")

        ran = 0
        for manager in managers:
            command = getattr(manager, attr)
            if command is None:
                logger.info(f"{manager.label} has no {attr} command, skipping")
                continue
            logger.info(f"Running {attr} for {manager.label}")
            self.executor.execute(split_verbatim(command), heading)
            ran += 1
        return ran

    def update(self, selector: str) -> int:
        """Run the update command of *selector* (a manager name or ``all``)."""
        return self._maintain(selector, "update", "Updates")

    def upgrade(self, selector: str) -> int:
        """Run the upgrade command of *selector* (a manager name or ``all``)."""
        return self._maintain(selector, "upgrade", "Upgrades")

    def gc(self, keep_last: Optional[int] = None) -> List[int]:
        """
        Delete old generations according to the retention policy.

        Args:
            keep_last: Overrides ``retention.keep_last`` from the config

        Returns:
            Numbers of the generations deleted (or that would be, in dry-run)
        """
        if keep_last is None and self.config is not None:
            keep_last = self.config.retention.keep_last
        if keep_last is None:
            logger.info("No retention configured, keeping every generation")
            return []

        evaluator = RetentionEvaluator(RetentionPolicy(keep_last=keep_last))
        _, to_delete = evaluator.evaluate(self.store.list())

        for number in to_delete:
            if self.dry_run:
                self.executor.show("deletes", generation_filename(number))
            else:
                self.store.delete(number)
        return to_delete

