from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    OK = 0
    CONFIG_ERROR = 2
    INPUT_ERROR = 3
    STORAGE_ERROR = 4
    RUNTIME_ERROR = 5


class PlanDiagramError(Exception):
    """Base error for the plan-to-diagram pipeline."""


class ConfigError(PlanDiagramError):
    """Raised for configuration or argument issues."""


class InputParseError(PlanDiagramError):
    """Raised when the plan JSON or the dependency graph text cannot be parsed.

    Fatal: the pipeline is aborted before any stage runs.
    """


class ReferenceInconsistency(PlanDiagramError):
    """
    An edge endpoint that resolves to no known Node.
    Never raised by the pipeline; such endpoints become external Nodes.
    """


class LayoutDegenerate(PlanDiagramError):
    """Raised by the layout engine when asked to lay out zero Nodes."""


class StorageError(PlanDiagramError):
    """Raised when the upload store cannot be read or written."""


class ExportError(PlanDiagramError):
    """Raised when writing output artifacts fails."""


def as_exit_code(exc: BaseException) -> int:
    if isinstance(exc, (ConfigError, ValueError)):
        return int(ExitCode.CONFIG_ERROR)
    if isinstance(exc, InputParseError):
        return int(ExitCode.INPUT_ERROR)
    if isinstance(exc, StorageError):
        return int(ExitCode.STORAGE_ERROR)
    if isinstance(exc, (ExportError, PlanDiagramError)):
        return int(ExitCode.RUNTIME_ERROR)
    return 1
