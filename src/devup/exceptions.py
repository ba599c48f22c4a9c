"""Exception hierarchy for devup."""


class DevupError(Exception):
    """Base exception for all devup errors."""


class ManifestParseError(DevupError):
    """A manifest file exists but its content could not be parsed."""

    def __init__(self, path, reason: str) -> None:
        self.path = path
        super().__init__(f"Could not parse {path}: {reason}")


class SynthesisError(DevupError):
    """Failed to write the generated environment files."""


class LaunchError(DevupError):
    """Failed to spawn the docker compose process."""


class HealthcheckError(DevupError):
    """Services did not become reachable in time."""
