"""Workflow orchestration."""

from devup.workflows.api import analyze_project, check_health, generate_config, run_environment
from devup.workflows.devenv import (
    Analyze,
    Confirm,
    Healthcheck,
    Launch,
    Synthesize,
    devenv_graph,
    wait_until_ready,
)
from devup.workflows.state import DevupState, Outcome, Phase, Severity

__all__ = [
    # Graph and nodes
    "devenv_graph",
    "Analyze",
    "Confirm",
    "Healthcheck",
    "Launch",
    "Synthesize",
    "wait_until_ready",
    # UI entry points
    "analyze_project",
    "check_health",
    "generate_config",
    "run_environment",
    # State
    "DevupState",
    "Outcome",
    "Phase",
    "Severity",
]
