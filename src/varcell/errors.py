"""varcell error hierarchy.

All varcell-specific errors inherit from VarcellError for easy catching.
"""

from __future__ import annotations

from collections.abc import Sequence


class VarcellError(Exception):
    """Base error for all varcell operations."""


class ProcessError(VarcellError):
    """An external command failed to spawn, exited non-zero, or wrote to stderr."""

    def __init__(
        self,
        command: Sequence[str],
        message: str,
        *,
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"{' '.join(self.command)}: {message}")


class VariableDroppedError(VarcellError):
    """A dropped Variable was mutated or given a new driver."""
