"""MCP Server exposing the publish pipeline."""

from __future__ import annotations

import asyncio
import json
import logging
import os

from mcp.server.fastmcp import FastMCP

from . import __version__
from .config import BuildContext, PublishEnvironment, resolve_flags, resolve_project_path
from .errors import PublishError
from .publish import PublishOrchestrator, PublishResult, PublishState
from .utils.buildpack_yml import BUILDPACK_YML

logger = logging.getLogger(__name__)

DEFAULT_PLATFORM_PATH = "/platform"

# Global orchestrator (single working directory per server)
_orchestrator: PublishOrchestrator | None = None


def get_orchestrator() -> PublishOrchestrator:
    """Get or create the publish orchestrator."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = PublishOrchestrator()
    return _orchestrator


def create_server(
    working_dir: str,
    platform_path: str = DEFAULT_PLATFORM_PATH,
    environment: PublishEnvironment | None = None,
) -> FastMCP:
    """Create and configure the MCP server.

    Args:
        working_dir: Application directory to publish. Publishing replaces
            its contents with the publish output.
        platform_path: Default platform directory for service bindings
        environment: Base environment snapshot; tool arguments override it
    """
    mcp = FastMCP("dotnet-publish")
    orchestrator = get_orchestrator()
    base_env = environment or PublishEnvironment.from_environ()

    def _environment(project_path: str | None, publish_flags: str | None) -> PublishEnvironment:
        return PublishEnvironment(
            project_path_override=(
                project_path if project_path is not None else base_env.project_path_override
            ),
            publish_flags=publish_flags if publish_flags is not None else base_env.publish_flags,
            dotnet_root=base_env.dotnet_root,
            service_binding_root=base_env.service_binding_root,
        )

    @mcp.tool()
    async def resolve_publish_config(
        project_path: str | None = None,
        publish_flags: str | None = None,
    ) -> dict:
        """
        Show the configuration a publish would use, without publishing.

        The project path comes from the project_path argument, then
        $BP_DOTNET_PROJECT_PATH, then the deprecated buildpack.yml.

        Args:
            project_path: Override for the project sub-path
            publish_flags: Override for the extra `dotnet publish` flags
        """
        env = _environment(project_path, publish_flags)
        try:
            resolution = resolve_project_path(env, os.path.join(working_dir, BUILDPACK_YML))
        except PublishError as e:
            return e.to_dict()
        return {
            "projectPath": resolution.project_path,
            "usedLegacyProjectPath": resolution.used_legacy,
            "flags": list(resolve_flags(env)),
        }

    @mcp.tool()
    async def publish_workspace(
        project_path: str | None = None,
        publish_flags: str | None = None,
        platform: str | None = None,
        timeout: float | None = None,
    ) -> dict:
        """
        Publish the working directory with `dotnet publish`.

        DESTRUCTIVE: on success the working directory's source is replaced by
        the publish output. Only build-metadata files are preserved.

        Args:
            project_path: Override for the project sub-path
            publish_flags: Override for the extra `dotnet publish` flags
            platform: Platform directory holding service bindings
            timeout: Seconds before the publish is cancelled
        """
        context = BuildContext(
            working_dir=working_dir,
            platform_path=platform or platform_path,
            buildpack_version=__version__,
        )
        previous = orchestrator.last_result
        build = orchestrator.build(context, _environment(project_path, publish_flags))
        try:
            if timeout is not None:
                result = await asyncio.wait_for(build, timeout=timeout)
            else:
                result = await build
        except asyncio.TimeoutError:
            cancelled = orchestrator.last_result
            if cancelled is None or cancelled is previous:
                # Timed out waiting for another publish; this run never started
                cancelled = PublishResult(success=False, state=PublishState.CANCELLED, cancelled=True)
            data = cancelled.to_dict()
            data["error"] = {"kind": "timeout", "error": f"Publish timeout after {timeout}s"}
            return data
        return result.to_dict()

    @mcp.resource("publish://last-result", mime_type="application/json")
    async def last_result_resource() -> str:
        """Result of the most recent publish."""
        result = orchestrator.last_result
        return json.dumps(result.to_dict() if result else None, indent=2)

    return mcp
