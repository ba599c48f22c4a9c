"""Locate and load dependency manifests at a project root.

Pure file access: nothing here decides what a manifest means.
"""

import json
from pathlib import Path
from typing import Any

import aiofiles

from devup.exceptions import ManifestParseError

NODE_MANIFESTS = ("package.json",)
PYTHON_MANIFESTS = ("requirements.txt", "pyproject.toml")
JAVA_MANIFESTS = ("pom.xml", "build.gradle", "build.gradle.kts")

# Files docker images run from /docker-entrypoint-initdb.d on first start
SCHEMA_SUFFIXES = (".sql", ".sql.gz")
SCHEMA_RESERVED_NAMES = ("initdb.sh",)


def present(root: Path, names: tuple[str, ...]) -> list[Path]:
    """Return the manifests from `names` that exist at `root`, in order."""
    return [root / name for name in names if (root / name).is_file()]


async def read_text(path: Path) -> str:
    """Read a manifest as text, replacing undecodable bytes."""
    async with aiofiles.open(path, encoding="utf-8", errors="replace") as f:
        return await f.read()


async def read_family_text(root: Path, names: tuple[str, ...]) -> str:
    """Concatenate the raw text of every present manifest in a family."""
    parts = [await read_text(path) for path in present(root, names)]
    return "\n".join(parts)


async def load_json(path: Path) -> dict[str, Any]:
    """Load a JSON manifest that must contain an object.

    Raises:
        ManifestParseError: If the file can't be read or isn't a JSON object.
    """
    try:
        data = json.loads(await read_text(path))
    except (OSError, ValueError) as e:
        raise ManifestParseError(path, str(e)) from e
    if not isinstance(data, dict):
        raise ManifestParseError(path, f"expected an object, got {type(data).__name__}")
    return data


def find_schema_files(root: Path) -> list[Path]:
    """Find SQL/schema init files at the project root (case-insensitive)."""
    found = []
    for path in root.iterdir():
        if not path.is_file():
            continue
        name = path.name.lower()
        if name.endswith(SCHEMA_SUFFIXES) or name in SCHEMA_RESERVED_NAMES:
            found.append(path)
    return sorted(found, key=lambda p: p.name)
