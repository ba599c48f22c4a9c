"""Config record and .env merge activities."""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

import aiofiles

from devup.models.config import DevupConfig, EnvPolicy
from devup.models.report import ProjectReport
from devup.settings import get_settings
from devup.templates.services import ENV_POLICY, connection_env

logger = logging.getLogger(__name__)


@dataclass
class EnvMergeResult:
    """Keys touched by a .env merge."""

    added: list[str] = field(default_factory=list)
    overwritten: list[str] = field(default_factory=list)


def build_config(report: ProjectReport) -> DevupConfig:
    """Build the persisted config record for a report."""
    return DevupConfig(
        project_type=report.framework,
        services=list(report.services),
        env=connection_env(report.services),
    )


async def write_config(path: Path, config: DevupConfig) -> Path:
    """Write devup.config.json at the project root."""
    config_path = path / get_settings().config_file
    async with aiofiles.open(config_path, "w") as f:
        await f.write(config.model_dump_json(by_alias=True, indent=2) + "\n")
    return config_path


def _key_pattern(key: str) -> re.Pattern[str]:
    return re.compile(rf"^\s*(?:export\s+)?{re.escape(key)}\s*=")


def merge_env_lines(
    lines: list[str],
    env: dict[str, str],
    policy: dict[str, EnvPolicy] = ENV_POLICY,
) -> tuple[list[str], EnvMergeResult]:
    """Merge generated variables into existing .env lines.

    Existing lines are never removed. A defined key is only rewritten when its
    policy is ALWAYS_OVERWRITE; undefined keys are appended. Empty values are
    skipped entirely.

    Returns:
        The merged lines and the keys that were added or overwritten.
    """
    merged = list(lines)
    while merged and not merged[-1].strip():
        merged.pop()

    result = EnvMergeResult()
    for key, value in env.items():
        if not value:
            continue
        pattern = _key_pattern(key)
        matches = [i for i, line in enumerate(merged) if pattern.match(line)]
        new_line = f"{key}={value}"

        if not matches:
            merged.append(new_line)
            result.added.append(key)
            continue

        if policy.get(key, EnvPolicy.SET_IF_ABSENT) is not EnvPolicy.ALWAYS_OVERWRITE:
            continue
        changed = False
        for i in matches:
            if merged[i] != new_line:
                merged[i] = new_line
                changed = True
        if changed:
            result.overwritten.append(key)

    return merged, result


async def merge_env_file(
    path: Path,
    env: dict[str, str],
    policy: dict[str, EnvPolicy] = ENV_POLICY,
) -> EnvMergeResult:
    """Merge connection variables into the project's .env file.

    The file is only created when there is at least one line to write. Bytes
    that aren't valid UTF-8 are carried through unchanged.
    """
    env_path = path / get_settings().env_file_name

    lines: list[str] = []
    if env_path.exists():
        async with aiofiles.open(env_path, encoding="utf-8", errors="surrogateescape") as f:
            lines = (await f.read()).splitlines()

    merged, result = merge_env_lines(lines, env, policy)
    if result.overwritten:
        logger.info("Re-asserted %s in %s", ", ".join(result.overwritten), env_path.name)

    if result.added or result.overwritten:
        async with aiofiles.open(env_path, "w", encoding="utf-8", errors="surrogateescape") as f:
            await f.write("\n".join(merged) + "\n")

    return result
