"""Pydantic models for devup."""

from devup.models.config import DevupConfig, EnvPolicy, OperationResult, SynthesisResult
from devup.models.report import Cache, Database, Framework, ProjectReport, Service

__all__ = [
    "Cache",
    "Database",
    "DevupConfig",
    "EnvPolicy",
    "Framework",
    "OperationResult",
    "ProjectReport",
    "Service",
    "SynthesisResult",
]
