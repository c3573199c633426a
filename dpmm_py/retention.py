"""
Retention policy implementation for dpmm.

Decides which old generations ``dpmm gc`` may delete. Generations are ranked by
sequence number only; file timestamps play no part.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from dpmm_py.errors import ConfigError
from dpmm_py.generation import GenerationEntry

logger = logging.getLogger("dpmm.retention")


@dataclass
class RetentionPolicy:
    """Retention policy configuration."""

    keep_last: Optional[int] = None  # None keeps every generation

    def __post_init__(self) -> None:
        if self.keep_last is not None and self.keep_last < 1:
            raise ConfigError("keep_last must be at least 1")


class RetentionEvaluator:
    """Evaluates retention policies against stored generations."""

    def __init__(self, policy: RetentionPolicy):
        self.policy = policy

    def evaluate(
        self, entries: List[GenerationEntry]
    ) -> Tuple[List[int], List[int]]:
        """
        Evaluate the retention policy against a list of generations.

        The highest-numbered generation is always kept, so the next append can
        never reuse a sequence number.

        Args:
            entries: Generations to evaluate, in any order

        Returns:
            Tuple of (numbers_to_keep, numbers_to_delete), both newest first
        """
        numbers = sorted((e.number for e in entries), reverse=True)
        if not numbers or self.policy.keep_last is None:
            return numbers, []

        keep = self.policy.keep_last
        to_keep, to_delete = numbers[:keep], numbers[keep:]

        logger.info(
            f"Retention policy: keeping {len(to_keep)} generations, "
            f"deleting {len(to_delete)}"
        )
        return to_keep, to_delete
