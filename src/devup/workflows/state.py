"""State for the devup workflow."""

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

from devup.activities.services import LogChunk
from devup.models.config import SynthesisResult
from devup.models.report import ProjectReport


class Phase(StrEnum):
    """Workflow phases where a run can stop."""

    ANALYZE = "analyze"
    CONFIRM = "confirm"
    SYNTHESIZE = "synthesize"
    LAUNCH = "launch"
    HEALTHCHECK = "healthcheck"


class Severity(StrEnum):
    """Severity levels for progress messages."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


# Callback signatures
ProgressCallback = Callable[[Severity, str], None]
ConfirmCallback = Callable[[ProjectReport], bool]  # (report) -> proceed?
LogCallback = Callable[[LogChunk], None]
StatusCallback = Callable[[dict[str, bool]], None]


def _noop_progress(severity: Severity, message: str) -> None:
    """Default no-op progress callback."""


def _auto_confirm(report: ProjectReport) -> bool:
    """Default confirmation - proceed without asking."""
    return True


def _noop_log(chunk: LogChunk) -> None:
    """Default log callback - discard output."""


def _noop_status(status: dict[str, bool]) -> None:
    """Default status callback."""


@dataclass
class Outcome:
    """How a workflow run ended."""

    success: bool
    phase: Phase
    message: str = ""
    health: dict[str, bool] = field(default_factory=dict)


@dataclass
class DevupState:
    """Shared state for the devup workflow."""

    path: Path

    # Skip launch and readiness polling (generate files only)
    generate_only: bool = False

    # Callbacks for UI interaction (CLI provides Rich-based implementations)
    on_progress: ProgressCallback = _noop_progress
    on_confirm: ConfirmCallback = _auto_confirm
    on_log: LogCallback = _noop_log
    on_status: StatusCallback = _noop_status

    report: ProjectReport | None = None
    synthesis: SynthesisResult | None = None
    launch_exit_code: int | None = None
    health: dict[str, bool] = field(default_factory=dict)
