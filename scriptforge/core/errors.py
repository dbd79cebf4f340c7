"""Exceptions raised by the forge pipeline and its collaborators."""
from __future__ import annotations

from typing import Sequence


class ForgeError(RuntimeError):
    """Base class for failures that end a pipeline with an ``Error`` record."""


class CommandError(ForgeError):
    """Raised when an external command cannot be spawned or exits non-zero."""

    def __init__(self, args: Sequence[str], message: str, *, returncode: int | None = None) -> None:
        self.args_list = list(args)
        self.returncode = returncode
        super().__init__(message)

    @classmethod
    def exited(cls, args: Sequence[str], returncode: int) -> "CommandError":
        return cls(args, f"`{' '.join(args)}` exited with status {returncode}", returncode=returncode)


class ProvisioningError(ForgeError):
    """Raised when the baseline project cannot be materialised."""


class DependencyInstallError(ForgeError):
    """Raised when a component named by the generated script fails to install."""


class SessionNotFound(ForgeError):
    """Raised when a session key does not map to a registered workspace."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__("Session directory not found")


class SessionBusy(ForgeError):
    """Raised when a workspace is evicted while a pipeline still owns it."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__("Session is still running")


class SessionDocumentError(ForgeError):
    """Raised when ``session.json`` is missing, unreadable or invalid."""


class NoSourceBlock(ForgeError):
    """Raised when generated text carries no usable fenced source block."""


class SimulationOutputError(ForgeError):
    """Raised when the dry-run output file exists but cannot be parsed."""


class GenerationError(ForgeError):
    """Raised when the code-generation service fails."""


class SimulationFailed(ForgeError):
    """Raised when the dry run exits non-zero; carries its diagnostics verbatim."""


class SinkClosed(Exception):
    """Raised by :class:`EventSink.send` once the consumer is gone.

    Not a :class:`ForgeError`: the pipeline treats it as a signal to stop
    producing rather than as a failure to report.
    """


__all__ = [
    "CommandError",
    "DependencyInstallError",
    "ForgeError",
    "GenerationError",
    "NoSourceBlock",
    "ProvisioningError",
    "SessionBusy",
    "SessionDocumentError",
    "SessionNotFound",
    "SimulationFailed",
    "SimulationOutputError",
    "SinkClosed",
]
