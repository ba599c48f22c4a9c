"""Artifact synthesis: turn a ProjectReport into the files of a dev environment."""

import logging
from pathlib import Path

from devup import manifests
from devup.activities import dockerfile, environment, services
from devup.exceptions import SynthesisError
from devup.models.config import SynthesisResult
from devup.models.report import ProjectReport
from devup.settings import get_settings
from devup.templates.services import env_policy

logger = logging.getLogger(__name__)


async def synthesize(path: Path, report: ProjectReport) -> SynthesisResult:
    """Write every generated artifact for a report.

    In order: output directory, devup.config.json, merged .env, runtime shim,
    Dockerfile, .dockerignore, docker-compose.yml. Re-running with the same
    report rewrites the generated files and leaves .env additive.

    Args:
        path: Project root directory.
        report: Report from analyze(); never re-inferred here.

    Returns:
        SynthesisResult listing what was written.

    Raises:
        SynthesisError: If any file can't be written.
    """
    settings = get_settings()
    output_dir = path / settings.output_dir

    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        result = SynthesisResult(output_dir=output_dir)

        config = environment.build_config(report)
        result.written.append(await environment.write_config(path, config))

        merged = await environment.merge_env_file(
            path, config.env, env_policy(report.services)
        )
        result.env_added = merged.added
        result.env_overwritten = merged.overwritten

        shim_path = await dockerfile.write_shim(output_dir, report)
        if shim_path:
            result.written.append(shim_path)

        dockerfile_path = await dockerfile.write_dockerfile(output_dir, report)
        if dockerfile_path:
            result.written.append(dockerfile_path)

        result.written.append(await dockerfile.write_dockerignore(path))

        has_env_file = (path / settings.env_file_name).exists()
        compose = services.build_compose(
            path, report, manifests.find_schema_files(path), has_env_file=has_env_file
        )
        result.written.append(await services.write_compose(output_dir, compose))
    except (OSError, UnicodeError) as e:
        logger.exception("Synthesis failed")
        raise SynthesisError(f"Failed to write environment files: {e}") from e

    logger.info("Wrote %d files to %s", len(result.written), output_dir)
    return result
