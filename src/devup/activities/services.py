"""Services (docker-compose) activities.

Builds the compose manifest for a report and launches it through the docker
compose CLI, exposing the CLI's output as a stream of text chunks.
"""

import asyncio
import codecs
import copy
import logging
import re
from collections.abc import AsyncIterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

import aiofiles
import yaml

from devup.exceptions import LaunchError
from devup.models.report import Framework, ProjectReport, Service
from devup.settings import get_settings
from devup.templates.services import (
    INIT_DIR,
    INIT_SERVICES,
    RELATIONAL_ALIASES,
    RELATIONAL_SERVICES,
    SERVICE_TEMPLATES,
)

logger = logging.getLogger(__name__)

# Empty directory mounted at INIT_DIR when the project ships no schema files
EMPTY_INIT_DIR = "initdb"
CHUNK_SIZE = 4096

_SERVICE_ALIASES: dict[str, list[str]] = {
    Service.POSTGRES: RELATIONAL_ALIASES,
    Service.MYSQL: RELATIONAL_ALIASES,
    Service.MONGODB: ["mongo"],
}


def compose_project_name(path: Path) -> str:
    """Derive a compose project name from the project directory."""
    name = re.sub(r"[^a-z0-9_-]", "", path.resolve().name.lower()).lstrip("_-")
    return name or "devup"


def _app_service(report: ProjectReport, has_env_file: bool) -> dict[str, Any]:
    settings = get_settings()
    if report.framework is Framework.UNKNOWN:
        logger.warning(
            "No Dockerfile is generated for Unknown projects; the app service in %s "
            "will only build if %s/Dockerfile is provided by hand",
            settings.compose_file,
            settings.output_dir,
        )
    app: dict[str, Any] = {
        "build": {
            "context": "..",
            "dockerfile": f"{settings.output_dir}/Dockerfile",
        },
        "ports": [f"{report.port}:{report.port}"],
        "volumes": ["..:/app"],
    }
    if report.framework is Framework.NODE:
        # Keep the image's node_modules instead of the host's
        app["volumes"].append("/app/node_modules")
    if has_env_file:
        app["env_file"] = [f"../{settings.env_file_name}"]
    if report.services:
        app["depends_on"] = {
            service.value: {"condition": "service_healthy"} for service in report.services
        }
    return app


def _infra_service(service: Service, schema_files: list[Path]) -> dict[str, Any]:
    block = copy.deepcopy(SERVICE_TEMPLATES[service])

    aliases = _SERVICE_ALIASES.get(service)
    if aliases:
        block["networks"] = {"default": {"aliases": list(aliases)}}

    if service in INIT_SERVICES:
        if service in RELATIONAL_SERVICES and schema_files:
            block["volumes"] = [
                f"../{schema.name}:{INIT_DIR}/{schema.name}:ro" for schema in schema_files
            ]
        else:
            block["volumes"] = [f"./{EMPTY_INIT_DIR}:{INIT_DIR}:ro"]
    return block


def build_compose(
    path: Path,
    report: ProjectReport,
    schema_files: list[Path],
    has_env_file: bool = True,
) -> dict[str, Any]:
    """Build the docker-compose document for a report.

    One `app` service plus one block per detected service, in detection order.
    Paths are relative to the output directory the manifest is written to.
    """
    services: dict[str, Any] = {"app": _app_service(report, has_env_file)}
    for service in report.services:
        services[service.value] = _infra_service(service, schema_files)
    return {"name": compose_project_name(path), "services": services}


def render_compose(compose: dict[str, Any]) -> str:
    """Serialize a compose document to YAML."""
    return yaml.safe_dump(compose, sort_keys=False, default_flow_style=False)


async def write_compose(output_dir: Path, compose: dict[str, Any]) -> Path:
    """Write docker-compose.yml into the output directory.

    Also creates the empty init directory referenced by fallback mounts.
    """
    (output_dir / EMPTY_INIT_DIR).mkdir(exist_ok=True)
    compose_path = output_dir / get_settings().compose_file
    async with aiofiles.open(compose_path, "w", encoding="utf-8") as f:
        await f.write(render_compose(compose))
    return compose_path


@dataclass(frozen=True)
class LogChunk:
    """A piece of docker compose output."""

    stream: Literal["stdout", "stderr"]
    text: str


class LaunchHandle:
    """Live handle on a running `docker compose up` process.

    Iterate it to receive output chunks in emission order. The process is
    not tied to the handle: closing it only stops delivery, and output keeps
    being drained so the process never blocks on a full pipe.
    """

    def __init__(self, process: asyncio.subprocess.Process, command: list[str]) -> None:
        self.process = process
        self.command = command
        self._queue: asyncio.Queue[LogChunk | None] = asyncio.Queue()
        self._closed = False
        self._readers = [
            asyncio.create_task(self._pump("stdout", process.stdout)),
            asyncio.create_task(self._pump("stderr", process.stderr)),
        ]

    @property
    def pid(self) -> int:
        return self.process.pid

    async def _pump(
        self, stream: Literal["stdout", "stderr"], reader: asyncio.StreamReader | None
    ) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            if reader is None:
                return
            while True:
                data = await reader.read(CHUNK_SIZE)
                text = decoder.decode(data, final=not data)
                if text and not self._closed:
                    self._queue.put_nowait(LogChunk(stream=stream, text=text))
                if not data:
                    return
        finally:
            self._queue.put_nowait(None)

    async def __aiter__(self) -> AsyncIterator[LogChunk]:
        remaining = len(self._readers)
        while remaining and not self._closed:
            chunk = await self._queue.get()
            if chunk is None:
                remaining -= 1
            elif not self._closed:
                yield chunk

    async def wait(self) -> int:
        """Wait for the compose process to exit and return its exit code."""
        return await self.process.wait()

    def close(self) -> None:
        """Stop delivering output. Does not stop the compose process."""
        self._closed = True
        self._queue.put_nowait(None)


async def _compose_command() -> list[str]:
    """Prefer the `docker compose` plugin, falling back to `docker-compose`."""
    try:
        process = await asyncio.create_subprocess_exec(
            "docker",
            "compose",
            "version",
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
        if await process.wait() == 0:
            return ["docker", "compose"]
    except OSError as e:
        logger.debug("docker compose plugin unavailable: %s", e)
    return ["docker-compose"]


async def launch(path: Path) -> LaunchHandle:
    """Start the generated environment with `up -d --build`.

    Returns as soon as the process is spawned. Build or start failures show up
    in the output stream and exit code, not as exceptions.

    Args:
        path: Project root directory.

    Returns:
        LaunchHandle streaming the compose output.

    Raises:
        LaunchError: If the compose file is missing or the process can't be spawned.
    """
    settings = get_settings()
    output_dir = path / settings.output_dir
    compose_path = output_dir / settings.compose_file

    if not compose_path.exists():
        raise LaunchError(f"{compose_path} not found. Run generate first.")

    command = [*await _compose_command(), "-f", settings.compose_file, "up", "-d", "--build"]
    logger.info("Running %s in %s", " ".join(command), output_dir)

    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            cwd=str(output_dir),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
        )
    except OSError as e:
        raise LaunchError(f"Could not start {command[0]}: {e}") from e

    return LaunchHandle(process, command)
