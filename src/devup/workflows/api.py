"""Entry points for a UI shell: one call per operator action."""

import logging
from pathlib import Path

from devup.activities import health, project, services, synthesis
from devup.activities.services import LaunchHandle
from devup.exceptions import LaunchError, SynthesisError
from devup.models.config import OperationResult
from devup.models.report import ProjectReport

logger = logging.getLogger(__name__)


async def analyze_project(path: Path) -> ProjectReport:
    """Analyze a project. Always returns a report, possibly Unknown."""
    return await project.analyze(Path(path))


async def generate_config(path: Path, report: ProjectReport | dict) -> OperationResult:
    """Write the dev environment files for a report.

    Accepts a report dict as sent over the UI boundary.
    """
    if not isinstance(report, ProjectReport):
        report = ProjectReport.model_validate(report)
    try:
        await synthesis.synthesize(Path(path), report)
    except SynthesisError as e:
        return OperationResult(success=False, error=str(e))
    return OperationResult(success=True)


async def run_environment(path: Path) -> tuple[OperationResult, LaunchHandle | None]:
    """Launch the generated environment.

    Returns:
        The spawn result and, on success, a handle streaming compose output.
    """
    try:
        handle = await services.launch(Path(path))
    except LaunchError as e:
        logger.error("Launch failed: %s", e)
        return OperationResult(success=False, error=str(e)), None
    return OperationResult(success=True), handle


async def check_health(service_names: list[str], port: int = 3000) -> dict[str, bool]:
    """Probe readiness of the given services; `port` is the app's port."""
    return await health.check_all(service_names, port)
