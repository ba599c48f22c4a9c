"""Dev environment workflow using Pydantic Graph."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from pydantic_graph import BaseNode, End, Graph, GraphRunContext

from devup.activities import health, project, services, synthesis
from devup.exceptions import HealthcheckError, LaunchError, SynthesisError
from devup.models.report import Framework
from devup.settings import get_settings
from devup.workflows.state import DevupState, Outcome, Phase, Severity, StatusCallback

Ctx = GraphRunContext[DevupState, None]


@dataclass
class Analyze(BaseNode[DevupState, None, Outcome]):
    """Infer the project's stack."""

    async def run(self, ctx: Ctx) -> Confirm:
        progress = ctx.state.on_progress
        progress(Severity.INFO, "Analyzing project...")
        report = await project.analyze(ctx.state.path)
        ctx.state.report = report

        for warning in report.warnings:
            progress(Severity.WARNING, warning)

        if report.framework is Framework.UNKNOWN:
            progress(Severity.WARNING, "No known manifest found")
        else:
            services_text = ", ".join(report.services) or "no services"
            progress(Severity.SUCCESS, f"Detected {report.framework} ({services_text})")
        return Confirm()


@dataclass
class Confirm(BaseNode[DevupState, None, Outcome]):
    """Show the report to the operator before writing anything."""

    async def run(self, ctx: Ctx) -> Synthesize | End[Outcome]:
        if not ctx.state.on_confirm(ctx.state.report):
            ctx.state.on_progress(Severity.WARNING, "Cancelled")
            return End(Outcome(success=False, phase=Phase.CONFIRM, message="Cancelled"))
        return Synthesize()


@dataclass
class Synthesize(BaseNode[DevupState, None, Outcome]):
    """Write config, .env, shim, Dockerfile and compose manifest."""

    async def run(self, ctx: Ctx) -> Launch | End[Outcome]:
        progress = ctx.state.on_progress

        try:
            progress(Severity.INFO, "Generating environment...")
            ctx.state.synthesis = await synthesis.synthesize(ctx.state.path, ctx.state.report)
        except SynthesisError as e:
            progress(Severity.ERROR, "Generation failed")
            return End(Outcome(success=False, phase=Phase.SYNTHESIZE, message=str(e)))

        progress(Severity.SUCCESS, f"Wrote {len(ctx.state.synthesis.written)} files")
        if ctx.state.synthesis.env_added:
            added = ", ".join(ctx.state.synthesis.env_added)
            progress(Severity.INFO, f"Added to .env: {added}")

        if ctx.state.generate_only:
            return End(Outcome(success=True, phase=Phase.SYNTHESIZE))
        return Launch()


@dataclass
class Launch(BaseNode[DevupState, None, Outcome]):
    """Run docker compose up and forward its output."""

    async def run(self, ctx: Ctx) -> Healthcheck | End[Outcome]:
        progress = ctx.state.on_progress

        try:
            progress(Severity.INFO, "Starting containers...")
            handle = await services.launch(ctx.state.path)
        except LaunchError as e:
            progress(Severity.ERROR, "Failed to start docker compose")
            return End(Outcome(success=False, phase=Phase.LAUNCH, message=str(e)))

        async for chunk in handle:
            ctx.state.on_log(chunk)
        ctx.state.launch_exit_code = await handle.wait()

        if ctx.state.launch_exit_code != 0:
            progress(Severity.ERROR, f"docker compose exited with {ctx.state.launch_exit_code}")
            return End(
                Outcome(
                    success=False,
                    phase=Phase.LAUNCH,
                    message=f"docker compose exited with {ctx.state.launch_exit_code}",
                )
            )

        progress(Severity.SUCCESS, "Containers started")
        return Healthcheck()


async def wait_until_ready(
    services_to_check: list[str],
    app_port: int,
    on_status: StatusCallback,
    timeout: float,
    interval: float,
) -> dict[str, bool]:
    """Poll check_all until every service is reachable.

    Raises:
        HealthcheckError: If something is still unreachable after `timeout` seconds.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while True:
        status = await health.check_all(services_to_check, app_port)
        on_status(status)
        if all(status.values()):
            return status
        if loop.time() >= deadline:
            pending = ", ".join(name for name, ok in status.items() if not ok)
            raise HealthcheckError(f"Still unreachable after {timeout:.0f}s: {pending}")
        await asyncio.sleep(interval)


@dataclass
class Healthcheck(BaseNode[DevupState, None, Outcome]):
    """Poll readiness of the app and its services."""

    async def run(self, ctx: Ctx) -> End[Outcome]:
        settings = get_settings()
        progress = ctx.state.on_progress
        report = ctx.state.report
        names = [service.value for service in report.services] + [health.APP_SERVICE]

        progress(Severity.INFO, f"Waiting for services (timeout: {settings.health_timeout:.0f}s)...")
        try:
            ctx.state.health = await wait_until_ready(
                names,
                report.port,
                ctx.state.on_status,
                timeout=settings.health_timeout,
                interval=settings.poll_interval,
            )
        except HealthcheckError as e:
            progress(Severity.ERROR, "Health check failed")
            return End(Outcome(success=False, phase=Phase.HEALTHCHECK, message=str(e)))

        progress(Severity.SUCCESS, "All services reachable")
        return End(Outcome(success=True, phase=Phase.HEALTHCHECK, health=ctx.state.health))


devenv_graph = Graph(
    nodes=[Analyze, Confirm, Synthesize, Launch, Healthcheck],
    state_type=DevupState,
    run_end_type=Outcome,
)
