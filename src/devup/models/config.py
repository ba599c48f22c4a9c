"""Pydantic models for generated artifacts."""

from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from devup.models.report import Framework, Service


class EnvPolicy(StrEnum):
    """How a generated variable treats an existing definition in .env."""

    ALWAYS_OVERWRITE = "always-overwrite"
    SET_IF_ABSENT = "set-if-absent"


class DevupConfig(BaseModel):
    """Persisted config record (devup.config.json).

    Every connection variable is always present; services that were not
    detected get an empty string, so consumers filter on truthiness.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    project_type: Framework
    services: list[Service] = []
    env: dict[str, str] = {}


class SynthesisResult(BaseModel):
    """Files written by one synthesis run."""

    output_dir: Path
    written: list[Path] = []
    env_added: list[str] = []
    env_overwritten: list[str] = []


class OperationResult(BaseModel):
    """Success/failure envelope returned across the UI boundary."""

    success: bool
    error: str | None = None
