"""Build configuration: inputs, environment snapshot and resolution.

Configuration is resolved from these sources, highest precedence first:
1. Environment variables (BP_DOTNET_PROJECT_PATH, BP_DOTNET_PUBLISH_FLAGS)
2. Legacy buildpack.yml at the working directory root (deprecated)

The environment is captured once at pipeline entry into a PublishEnvironment;
nothing below this module reads os.environ.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass

from .utils.buildpack_yml import parse_project_path

logger = logging.getLogger(__name__)

PROJECT_PATH_ENV = "BP_DOTNET_PROJECT_PATH"
PUBLISH_FLAGS_ENV = "BP_DOTNET_PUBLISH_FLAGS"
DOTNET_ROOT_ENV = "DOTNET_ROOT"
SERVICE_BINDING_ROOT_ENV = "SERVICE_BINDING_ROOT"


@dataclass(frozen=True)
class BuildContext:
    """Immutable input for one build invocation."""

    working_dir: str
    platform_path: str
    buildpack_name: str = "Dotnet Publish Buildpack"
    buildpack_version: str = "0.0.0"


@dataclass(frozen=True)
class PublishEnvironment:
    """Snapshot of the environment variables the pipeline reads."""

    project_path_override: str | None = None
    """BP_DOTNET_PROJECT_PATH; None means unset (empty string is a valid override)."""

    publish_flags: str | None = None
    """BP_DOTNET_PUBLISH_FLAGS, whitespace-delimited."""

    dotnet_root: str = ""
    """DOTNET_ROOT handed to the publish process."""

    service_binding_root: str | None = None
    """SERVICE_BINDING_ROOT; overrides <platform>/bindings."""

    @classmethod
    def from_environ(cls, environ: Mapping[str, str] | None = None) -> PublishEnvironment:
        """Capture the relevant variables from an environment mapping."""
        env = os.environ if environ is None else environ
        return cls(
            project_path_override=env.get(PROJECT_PATH_ENV),
            publish_flags=env.get(PUBLISH_FLAGS_ENV),
            dotnet_root=env.get(DOTNET_ROOT_ENV, ""),
            service_binding_root=env.get(SERVICE_BINDING_ROOT_ENV) or None,
        )

    def get(self, name: str) -> str | None:
        """Look up a captured variable by its environment name."""
        return {
            PROJECT_PATH_ENV: self.project_path_override,
            PUBLISH_FLAGS_ENV: self.publish_flags,
            DOTNET_ROOT_ENV: self.dotnet_root or None,
            SERVICE_BINDING_ROOT_ENV: self.service_binding_root,
        }.get(name)


@dataclass(frozen=True)
class ProjectPathResolution:
    """Outcome of project path resolution."""

    project_path: str
    used_legacy: bool = False


@dataclass(frozen=True)
class ResolvedConfig:
    """Configuration consumed by the publish process."""

    project_path: str
    flags: tuple[str, ...] = ()


def resolve_project_path(
    environment: PublishEnvironment, metadata_file_path: str
) -> ProjectPathResolution:
    """Resolve which sub-path of the working directory is the project to publish.

    An override that is set wins even when empty, and buildpack.yml is not read.

    Args:
        environment: Captured environment
        metadata_file_path: Path to the legacy buildpack.yml

    Returns:
        Resolved project path and whether buildpack.yml supplied it

    Raises:
        ParseError: If buildpack.yml exists but is malformed
    """
    if environment.project_path_override is not None:
        logger.debug(f"Project path from ${PROJECT_PATH_ENV}: {environment.project_path_override!r}")
        return ProjectPathResolution(environment.project_path_override)

    project_path = parse_project_path(metadata_file_path)
    return ProjectPathResolution(project_path, used_legacy=bool(project_path))


def resolve_flags(
    environment: PublishEnvironment, env_var_name: str = PUBLISH_FLAGS_ENV
) -> tuple[str, ...]:
    """Split a whitespace-delimited flags variable into discrete tokens.

    An unset variable yields no flags.
    """
    value = environment.get(env_var_name)
    if not value:
        return ()
    return tuple(value.split())
