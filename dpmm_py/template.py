"""
Command templates for package manager operations.

A template such as ``"sudo apt-get install -y $"`` is parsed once into a
program, the arguments before the ``$`` slot and the arguments after it.
The slot may carry a prefix or suffix (``nix-env -iA nixpkgs.$``), which is
applied to every package name. Rendering substitutes package names into the
slot without any shell interpretation.
"""

from dataclasses import dataclass
from typing import Iterable, List, Tuple

from dpmm_py.errors import ConfigError

PLACEHOLDER = "$"


@dataclass(frozen=True)
class CommandTemplate:
    """A parsed install/uninstall template with one variadic package slot."""

    source: str
    program: str
    before: Tuple[str, ...]
    after: Tuple[str, ...]
    prefix: str = ""
    suffix: str = ""

    @classmethod
    def parse(cls, source: str) -> "CommandTemplate":
        """Parse *source*, raising ``ConfigError`` unless it has exactly one slot.

        The slot may not appear in the program name.
        """
        if not isinstance(source, str):
            raise ConfigError(f"Command template must be a string, got {source!r}")
        tokens = source.split()
        if not tokens:
            raise ConfigError("Command template is empty")

        if PLACEHOLDER in tokens[0]:
            raise ConfigError(
                f"Placeholder {PLACEHOLDER!r} cannot be the program name: {source!r}"
            )

        count = source.count(PLACEHOLDER)
        if count != 1:
            raise ConfigError(
                f"Command template must contain exactly one {PLACEHOLDER!r} "
                f"placeholder, found {count}: {source!r}"
            )
        slot = next(i for i, token in enumerate(tokens) if PLACEHOLDER in token)
        prefix, _, suffix = tokens[slot].partition(PLACEHOLDER)

        return cls(
            source=source,
            program=tokens[0],
            before=tuple(tokens[1:slot]),
            after=tuple(tokens[slot + 1 :]),
            prefix=prefix,
            suffix=suffix,
        )

    def render(self, packages: Iterable[str]) -> List[str]:
        """Return the argv for *packages*, in the order given.

        Package names are split on whitespace just like the rest of the
        template, so a name containing spaces becomes several arguments. The
        slot's prefix goes on the first of them and its suffix on the last.
        """
        args: List[str] = []
        for package in packages:
            words = package.split()
            if not words:
                continue
            words[0] = self.prefix + words[0]
            words[-1] = words[-1] + self.suffix
            args.extend(words)
        return [self.program, *self.before, *args, *self.after]

    def __str__(self) -> str:
        return self.source


def split_verbatim(command: str) -> List[str]:
    """Split a placeholder-free command (update/upgrade) into argv."""
    argv = command.split()
    if not argv:
        raise ConfigError("Command is empty")
    return argv
