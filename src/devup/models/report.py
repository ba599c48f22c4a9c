"""Pydantic models for stack detection."""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class Framework(StrEnum):
    """Detected application stack. FASTAPI and FLASK refine PYTHON."""

    UNKNOWN = "Unknown"
    NODE = "Node.js"
    PYTHON = "Python"
    FASTAPI = "FastAPI"
    FLASK = "Flask"
    JAVA = "Java"

    @property
    def is_python(self) -> bool:
        return self in (Framework.PYTHON, Framework.FASTAPI, Framework.FLASK)


class Database(StrEnum):
    """Primary datastore summary."""

    NONE = "None detected"
    POSTGRES = "Postgres"
    MYSQL = "MySQL"
    MONGODB = "MongoDB"


class Cache(StrEnum):
    """Cache summary."""

    NONE = "None detected"
    REDIS = "Redis"


class Service(StrEnum):
    """Infrastructure services that get their own compose block."""

    POSTGRES = "postgres"
    MYSQL = "mysql"
    MONGODB = "mongodb"
    REDIS = "redis"


class ProjectReport(BaseModel):
    """Result of one inference pass over a project root.

    Serializes with camelCase keys (configFound, startCommand, ...) so the
    report can be handed to a UI as-is; either spelling is accepted on input.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    framework: Framework = Framework.UNKNOWN
    database: Database = Database.NONE
    cache: Cache = Cache.NONE
    services: tuple[Service, ...] = ()
    config_found: bool = False
    port: int = 3000
    start_command: str = ""
    node_version: str = "20"
    stacks: tuple[Framework, ...] = ()
    warnings: tuple[str, ...] = ()

    def uses(self, service: Service) -> bool:
        """Check whether a service was detected."""
        return service in self.services
