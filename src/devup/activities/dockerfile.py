"""Dockerfile, runtime shim and .dockerignore generation."""

import json
import logging
import shlex
from pathlib import Path

import aiofiles

from devup.models.report import Framework, ProjectReport
from devup.settings import get_settings
from devup.templates.dockerfiles import (
    DOCKERIGNORE_ENTRIES,
    JAVA_DOCKERFILE,
    NODE_DOCKERFILE,
    PYTHON_DOCKERFILE,
)
from devup.templates.services import DEV_PASSWORD, DEV_USER
from devup.templates.shims import (
    LOOPBACK_HOSTS,
    NODE_SHIM,
    PORT_HOSTS,
    PYTHON_REDIRECT_HOSTS,
    PYTHON_SHIM,
)

logger = logging.getLogger(__name__)

NODE_SHIM_FILE = "shim.js"
PYTHON_SHIM_FILE = "sitecustomize.py"


def _exec_form(command: str) -> str:
    """Render a shell command as a JSON exec-form CMD."""
    return json.dumps(shlex.split(command))


def render_shim(report: ProjectReport) -> tuple[str, str] | None:
    """Render the runtime shim for a report.

    Returns:
        (filename, content), or None for stacks that get no shim.
    """
    if report.framework is Framework.NODE:
        content = NODE_SHIM.render(
            loopback=LOOPBACK_HOSTS,
            host="mysql",
            user=DEV_USER,
            password=DEV_PASSWORD,
            port_hosts=PORT_HOSTS,
        )
        return NODE_SHIM_FILE, content
    if report.framework.is_python:
        content = PYTHON_SHIM.render(
            redirect_hosts=PYTHON_REDIRECT_HOSTS,
            port_hosts=PORT_HOSTS,
        )
        return PYTHON_SHIM_FILE, content
    return None


def render_dockerfile(report: ProjectReport) -> str | None:
    """Render the Dockerfile for a report, or None for an unknown stack."""
    settings = get_settings()
    params = {
        "output_dir": settings.output_dir,
        "port": report.port,
        "command": _exec_form(report.start_command),
    }

    if report.framework is Framework.NODE:
        return NODE_DOCKERFILE.render(node_version=report.node_version, **params)
    if report.framework.is_python:
        return PYTHON_DOCKERFILE.render(python_version=settings.python_version, **params)
    if report.framework is Framework.JAVA:
        return JAVA_DOCKERFILE.render(**params)
    return None


async def _write(path: Path, content: str) -> Path:
    async with aiofiles.open(path, "w", encoding="utf-8") as f:
        await f.write(content)
    return path


async def write_shim(output_dir: Path, report: ProjectReport) -> Path | None:
    """Write the runtime shim into the output directory, if the stack has one."""
    rendered = render_shim(report)
    if rendered is None:
        return None
    filename, content = rendered
    return await _write(output_dir / filename, content)


async def write_dockerfile(output_dir: Path, report: ProjectReport) -> Path | None:
    """Write the Dockerfile into the output directory."""
    content = render_dockerfile(report)
    if content is None:
        logger.warning("No Dockerfile template for %s projects", report.framework)
        return None
    return await _write(output_dir / "Dockerfile", content)


async def write_dockerignore(path: Path) -> Path:
    """Write .dockerignore at the project root (the build context)."""
    return await _write(path / ".dockerignore", "\n".join(DOCKERIGNORE_ENTRIES) + "\n")
