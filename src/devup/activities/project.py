"""Project analysis activity: infer the stack from dependency manifests."""

import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from devup import manifests
from devup.exceptions import ManifestParseError
from devup.models.report import Cache, Database, Framework, ProjectReport, Service
from devup.settings import get_settings

logger = logging.getLogger(__name__)

# Node: exact dependency-key matches
NODE_POSTGRES = frozenset({"pg", "sequelize", "prisma", "knex", "typeorm"})
NODE_POSTGRES_SUBSTRING = "postgres"
NODE_MYSQL = frozenset({"mysql", "mysql2"})
NODE_MONGODB = frozenset({"mongoose", "mongodb"})
NODE_REDIS = frozenset({"redis", "ioredis"})

# Python: substring matches over the lowercased manifest text
PY_POSTGRES = ("psycopg", "asyncpg")
PY_MYSQL = ("pymysql", "mysqlclient", "mysql-connector", "aiomysql")
PY_ORM = ("sqlalchemy", "sqlmodel")
PY_POSTGRES_HINT = "postgres"
PY_MONGODB = ("pymongo", "mongoengine", "beanie")
PY_REDIS = ("redis",)

FASTAPI_ENTRY_CANDIDATES = ("main.py", "app.py", "server.py")
PYTHON_ENTRY_CANDIDATES = ("app.py", "main.py", "server.py")

# Java: substring matches over the raw build descriptor text
JAVA_POSTGRES = "postgresql"
JAVA_MONGODB = "mongodb"
JAVA_REDIS = "redis"
JAVA_START_COMMAND = "mvn spring-boot:run"

PORTS = {
    Framework.UNKNOWN: 3000,
    Framework.NODE: 3000,
    Framework.PYTHON: 5000,
    Framework.FASTAPI: 8000,
    Framework.FLASK: 5000,
    Framework.JAVA: 8080,
}


@dataclass
class _Detection:
    """Mutable accumulator; frozen into a ProjectReport once all families ran."""

    node_version: str
    framework: Framework = Framework.UNKNOWN
    database: Database = Database.NONE
    cache: Cache = Cache.NONE
    services: list[Service] = field(default_factory=list)
    port: int = PORTS[Framework.UNKNOWN]
    start_command: str = ""
    stacks: list[Framework] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def set_database(self, database: Database, service: Service) -> None:
        self.database = database
        self._add(service)

    def set_cache(self, cache: Cache, service: Service) -> None:
        self.cache = cache
        self._add(service)

    def set_framework(self, framework: Framework) -> None:
        self.framework = framework
        self.port = PORTS[framework]

    def _add(self, service: Service) -> None:
        if service not in self.services:
            self.services.append(service)


def _contains_any(text: str, keywords: tuple[str, ...]) -> bool:
    return any(keyword in text for keyword in keywords)


def _resolve_entry(root: Path, candidates: tuple[str, ...]) -> str:
    """Return the first candidate entry file on disk, else the first candidate."""
    for name in candidates:
        if (root / name).is_file():
            return name
    return candidates[0]


def _dependency_keys(pkg: dict[str, Any]) -> set[str]:
    keys: set[str] = set()
    for section in ("dependencies", "devDependencies"):
        deps = pkg.get(section)
        if isinstance(deps, dict):
            keys.update(deps)
    return keys


async def _detect_node(root: Path, found: list[Path], det: _Detection) -> None:
    det.set_framework(Framework.NODE)
    try:
        pkg = await manifests.load_json(found[0])
    except ManifestParseError as e:
        logger.warning("Ignoring package.json contents: %s", e)
        pkg = {}

    keys = _dependency_keys(pkg)
    if keys & NODE_POSTGRES or any(NODE_POSTGRES_SUBSTRING in k for k in keys):
        det.set_database(Database.POSTGRES, Service.POSTGRES)
    elif keys & NODE_MYSQL:
        det.set_database(Database.MYSQL, Service.MYSQL)
    if keys & NODE_MONGODB:
        det.set_database(Database.MONGODB, Service.MONGODB)
    if keys & NODE_REDIS:
        det.set_cache(Cache.REDIS, Service.REDIS)

    scripts = pkg.get("scripts")
    main = pkg.get("main")
    if isinstance(scripts, dict) and scripts.get("start"):
        det.start_command = "npm start"
    elif isinstance(main, str) and main:
        det.start_command = f"node {main}"
    else:
        det.start_command = "node index.js"

    engines = pkg.get("engines")
    constraint = engines.get("node") if isinstance(engines, dict) else None
    if isinstance(constraint, str):
        match = re.search(r"\d+", constraint)
        if match:
            det.node_version = match.group(0)


async def _detect_python(root: Path, found: list[Path], det: _Detection) -> None:
    det.set_framework(Framework.PYTHON)
    text = (await manifests.read_family_text(root, manifests.PYTHON_MANIFESTS)).lower()

    if _contains_any(text, PY_POSTGRES):
        det.set_database(Database.POSTGRES, Service.POSTGRES)
    elif _contains_any(text, PY_MYSQL):
        det.set_database(Database.MYSQL, Service.MYSQL)
    elif _contains_any(text, PY_ORM):
        # A bare ORM means MySQL unless something names postgres outright
        if PY_POSTGRES_HINT in text:
            det.set_database(Database.POSTGRES, Service.POSTGRES)
        else:
            det.set_database(Database.MYSQL, Service.MYSQL)
    if _contains_any(text, PY_MONGODB):
        det.set_database(Database.MONGODB, Service.MONGODB)
    if _contains_any(text, PY_REDIS):
        det.set_cache(Cache.REDIS, Service.REDIS)

    if "fastapi" in text:
        det.set_framework(Framework.FASTAPI)
        module = _resolve_entry(root, FASTAPI_ENTRY_CANDIDATES).removesuffix(".py")
        det.start_command = f"uvicorn {module}:app --host 0.0.0.0 --port {det.port}"
    elif "flask" in text:
        det.set_framework(Framework.FLASK)
        module = _resolve_entry(root, PYTHON_ENTRY_CANDIDATES).removesuffix(".py")
        det.start_command = f"flask --app {module} run --host 0.0.0.0 --port {det.port}"
    else:
        det.start_command = f"python {_resolve_entry(root, PYTHON_ENTRY_CANDIDATES)}"


async def _detect_java(root: Path, found: list[Path], det: _Detection) -> None:
    det.set_framework(Framework.JAVA)
    text = await manifests.read_family_text(root, manifests.JAVA_MANIFESTS)

    if JAVA_POSTGRES in text:
        det.set_database(Database.POSTGRES, Service.POSTGRES)
    if JAVA_MONGODB in text:
        det.set_database(Database.MONGODB, Service.MONGODB)
    if JAVA_REDIS in text:
        det.set_cache(Cache.REDIS, Service.REDIS)

    det.start_command = JAVA_START_COMMAND


Detector = Callable[[Path, list[Path], _Detection], Awaitable[None]]

# Evaluation order is part of the contract: when several manifest families are
# present, each later family overwrites framework, database, cache, port and
# start command set by the earlier ones.
FAMILY_ORDER: tuple[tuple[Framework, tuple[str, ...], Detector], ...] = (
    (Framework.NODE, manifests.NODE_MANIFESTS, _detect_node),
    (Framework.PYTHON, manifests.PYTHON_MANIFESTS, _detect_python),
    (Framework.JAVA, manifests.JAVA_MANIFESTS, _detect_java),
)


async def analyze(path: Path) -> ProjectReport:
    """Infer a project's stack from the manifests at its root.

    Never raises for missing or malformed manifests: a project with nothing
    recognizable yields an Unknown report.

    Args:
        path: Project root directory.

    Returns:
        Immutable ProjectReport.
    """
    settings = get_settings()
    det = _Detection(node_version=settings.default_node_version)

    for family, names, detector in FAMILY_ORDER:
        found = manifests.present(path, names)
        if not found:
            continue
        logger.debug("Found %s manifests: %s", family, ", ".join(p.name for p in found))
        det.stacks.append(family)
        await detector(path, found, det)

    if len(det.stacks) > 1:
        message = (
            f"Multiple stacks detected ({', '.join(det.stacks)}); "
            f"using {det.stacks[-1]} settings"
        )
        logger.warning(message)
        det.warnings.append(message)

    report = ProjectReport(
        framework=det.framework,
        database=det.database,
        cache=det.cache,
        services=tuple(det.services),
        config_found=(path / settings.config_file).exists(),
        port=det.port,
        start_command=det.start_command,
        node_version=det.node_version,
        stacks=tuple(det.stacks),
        warnings=tuple(det.warnings),
    )
    logger.info(
        "Detected %s (database: %s, cache: %s)", report.framework, report.database, report.cache
    )
    return report
