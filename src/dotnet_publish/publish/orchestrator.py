"""Publish orchestrator - the build-stage state machine.

State machine:
IDLE → RESOLVING_PROJECT_PATH → RESOLVING_FLAGS → STAGING_CREDENTIALS
     → CREATING_OUTPUT → PUBLISHING → REPLACING_SOURCE → REMOVING_OUTPUT → DONE
Any step failure → FAILED; asyncio cancellation → CANCELLED (re-raised).

A staged NuGet.Config is released on every exit path. The source replacement
is never rolled back: once the working directory has been replaced, a later
failure is reported but not undone.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import tempfile
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from ..config import (
    PROJECT_PATH_ENV,
    BuildContext,
    ProjectPathResolution,
    PublishEnvironment,
    ResolvedConfig,
    resolve_flags,
    resolve_project_path,
)
from ..errors import (
    BindingResolutionError,
    ParseError,
    PublishError,
    PublishFailedError,
    SourceRemovalError,
    TempLifecycleError,
)
from ..utils.bindings import BindingResolver
from ..utils.buildpack_yml import BUILDPACK_YML
from ..utils.version import next_major_version
from .credentials import StagedCredential, stage_nuget_config
from .process import PublishProcess
from .source import SourceReplacer
from .state import PublishResult, PublishState

logger = logging.getLogger(__name__)

# Build-metadata files that survive source replacement
EXCLUDED_FILES: tuple[str, ...] = (".dotnet_root",)

OUTPUT_DIR_PREFIX = "dotnet-publish-output"

# Error kind for an unexpected exception raised while in a given step
_STEP_ERRORS: dict[PublishState, type[PublishError]] = {
    PublishState.RESOLVING_PROJECT_PATH: ParseError,
    PublishState.STAGING_CREDENTIALS: BindingResolutionError,
    PublishState.CREATING_OUTPUT: TempLifecycleError,
    PublishState.PUBLISHING: PublishFailedError,
    PublishState.REPLACING_SOURCE: SourceRemovalError,
    PublishState.REMOVING_OUTPUT: TempLifecycleError,
}


@dataclass
class _Progress:
    """What the run has produced so far; read back when building the result."""

    resolution: ProjectPathResolution | None = None
    config: ResolvedConfig | None = None
    output_dir: str | None = None
    staged: StagedCredential | None = None
    flags: tuple[str, ...] = field(default_factory=tuple)


class PublishOrchestrator:
    """Runs the publish pipeline against one working directory at a time.

    Usage:
        orchestrator = PublishOrchestrator()
        result = await orchestrator.build(context, PublishEnvironment.from_environ())
    """

    def __init__(
        self,
        publish_process: PublishProcess | None = None,
        source_replacer: SourceReplacer | None = None,
        binding_resolver: BindingResolver | None = None,
        *,
        project_path_resolver: Callable[[PublishEnvironment, str], ProjectPathResolution] = resolve_project_path,
        flags_resolver: Callable[[PublishEnvironment], tuple[str, ...]] = resolve_flags,
        credential_stager: Callable[[str, str, BindingResolver], StagedCredential | None] = stage_nuget_config,
        excluded_files: tuple[str, ...] = EXCLUDED_FILES,
        temp_root: str | None = None,
    ):
        """Initialize orchestrator.

        Args:
            publish_process: Runs `dotnet publish` (default PublishProcess)
            source_replacer: Replaces working directory contents
            binding_resolver: Service binding resolver; by default built per run
                from the environment's SERVICE_BINDING_ROOT
            project_path_resolver: Project path resolution step
            flags_resolver: Publish flags resolution step
            credential_stager: NuGet.Config staging step
            excluded_files: Names preserved during source replacement
            temp_root: Parent directory for the publish output (default system temp)
        """
        self._process = publish_process or PublishProcess()
        self._replacer = source_replacer or SourceReplacer()
        self._binding_resolver = binding_resolver
        self._resolve_project_path = project_path_resolver
        self._resolve_flags = flags_resolver
        self._stage_credentials = credential_stager
        self._excluded_files = tuple(excluded_files)
        self._temp_root = temp_root
        self._state = PublishState.IDLE
        self._lock = asyncio.Lock()
        self._last_result: PublishResult | None = None
        self._state_listeners: list[Callable[[PublishState], None]] = []

    @property
    def state(self) -> PublishState:
        """Current pipeline state."""
        return self._state

    @property
    def last_result(self) -> PublishResult | None:
        """Result of the most recent completed run."""
        return self._last_result

    @property
    def excluded_files(self) -> tuple[str, ...]:
        return self._excluded_files

    def on_state_change(self, listener: Callable[[PublishState], None]) -> None:
        """Register state change listener."""
        self._state_listeners.append(listener)

    def _set_state(self, new_state: PublishState) -> None:
        """Update state and notify listeners."""
        old_state = self._state
        self._state = new_state
        if old_state != new_state:
            logger.debug(f"Publish state: {old_state.value} -> {new_state.value}")
            for listener in self._state_listeners:
                try:
                    listener(new_state)
                except Exception:
                    logger.exception("State listener error")

    def _warn_legacy_project_path(self, context: BuildContext) -> None:
        next_major = next_major_version(context.buildpack_version)
        target = f"v{next_major}" if next_major else "its next major version"
        logger.warning(
            f"WARNING: Setting the project path through {BUILDPACK_YML} will be deprecated soon "
            f"in {context.buildpack_name} {target}"
        )
        logger.warning(
            f"Please specify the project path through the ${PROJECT_PATH_ENV} environment "
            "variable instead. See README.md or the documentation on paketo.io for more information."
        )

    def _create_output_dir(self, working_dir: str) -> str:
        """Create the uniquely named publish output directory.

        Raises:
            TempLifecycleError: If it cannot be created or would be clobbered
                by source replacement
        """
        try:
            output_dir = tempfile.mkdtemp(prefix=OUTPUT_DIR_PREFIX, dir=self._temp_root)
        except OSError as e:
            raise TempLifecycleError(f"could not create temp directory: {e}") from e

        problem = None
        if os.path.basename(output_dir) in self._excluded_files:
            problem = "name collides with a preserved build-metadata file"
        elif os.path.commonpath(
            [os.path.realpath(output_dir), os.path.realpath(working_dir)]
        ) == os.path.realpath(working_dir):
            problem = "it is inside the working directory"
        if problem is not None:
            self._discard_output(output_dir)
            raise TempLifecycleError(
                f"could not create temp directory: {output_dir} is unusable, {problem}"
            )
        return output_dir

    def _discard_output(self, output_dir: str) -> None:
        """Best-effort removal of the output directory after a failure."""
        try:
            shutil.rmtree(output_dir)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Failed to remove temp directory {output_dir}: {e}")

    def _release_credentials(self, progress: _Progress, failed: bool) -> PublishError | None:
        """Release the staged credential, if any.

        Returns:
            The release failure, or None when nothing was staged or removal worked
        """
        staged = progress.staged
        if staged is None:
            return None
        try:
            staged.release()
        except OSError as e:
            if failed:
                logger.error(f"Failed to remove staged {staged.path}: {e}")
            return SourceRemovalError(f"could not remove staged {staged.path}: {e}")
        return None

    async def _run(self, context: BuildContext, environment: PublishEnvironment, progress: _Progress) -> None:
        """Execute every step in order; the first PublishError aborts the run."""
        working_dir = context.working_dir

        self._set_state(PublishState.RESOLVING_PROJECT_PATH)
        progress.resolution = self._resolve_project_path(
            environment, os.path.join(working_dir, BUILDPACK_YML)
        )
        if progress.resolution.used_legacy:
            self._warn_legacy_project_path(context)

        self._set_state(PublishState.RESOLVING_FLAGS)
        progress.flags = tuple(self._resolve_flags(environment))
        progress.config = ResolvedConfig(
            project_path=progress.resolution.project_path, flags=progress.flags
        )

        self._set_state(PublishState.STAGING_CREDENTIALS)
        resolver = self._binding_resolver or BindingResolver(environment.service_binding_root)
        progress.staged = self._stage_credentials(context.platform_path, working_dir, resolver)

        self._set_state(PublishState.CREATING_OUTPUT)
        progress.output_dir = self._create_output_dir(working_dir)

        self._set_state(PublishState.PUBLISHING)
        logger.info("  Executing build process")
        try:
            await self._process.execute(
                working_dir,
                environment.dotnet_root,
                progress.config.project_path,
                progress.output_dir,
                list(progress.config.flags),
            )
        except BaseException:
            self._discard_output(progress.output_dir)
            raise

        self._set_state(PublishState.REPLACING_SOURCE)
        logger.info("  Removing source code")
        self._replacer.replace(working_dir, progress.output_dir, *self._excluded_files)

        self._set_state(PublishState.REMOVING_OUTPUT)
        try:
            shutil.rmtree(progress.output_dir)
        except OSError as e:
            raise TempLifecycleError(f"could not remove temp directory: {e}") from e

    async def build(
        self,
        context: BuildContext,
        environment: PublishEnvironment | None = None,
    ) -> PublishResult:
        """Run the publish pipeline.

        Args:
            context: Build inputs
            environment: Environment snapshot (empty when not provided)

        Returns:
            Publish result; on failure `error` holds the first error, unchanged

        Raises:
            asyncio.CancelledError: If cancelled (after credential cleanup); the
                cancelled run is still recorded as `last_result`
        """
        environment = environment or PublishEnvironment()

        async with self._lock:
            logger.info(f"{context.buildpack_name} {context.buildpack_version}")
            start_time = time.perf_counter()
            progress = _Progress()
            error: PublishError | None = None
            failed_step: str | None = None

            try:
                await self._run(context, environment, progress)
            except PublishError as e:
                error = e
                failed_step = self._state.value
            except Exception as e:
                if not isinstance(e, OSError):
                    logger.exception(f"Unexpected error during {self._state.value}")
                error = _STEP_ERRORS.get(self._state, PublishError)(
                    f"{self._state.value} failed: {e}"
                )
                error.__cause__ = e
                failed_step = self._state.value
            except asyncio.CancelledError:
                self._last_result = PublishResult(
                    success=False,
                    state=PublishState.CANCELLED,
                    project_path=progress.resolution.project_path if progress.resolution else "",
                    flags=progress.flags,
                    failed_step=self._state.value,
                    duration_ms=(time.perf_counter() - start_time) * 1000,
                    cancelled=True,
                )
                self._set_state(PublishState.CANCELLED)
                raise
            finally:
                release_error = self._release_credentials(
                    progress, failed=self._state == PublishState.CANCELLED or failed_step is not None
                )

            if error is None and release_error is not None:
                error = release_error
                failed_step = PublishState.STAGING_CREDENTIALS.value

            duration = (time.perf_counter() - start_time) * 1000
            success = error is None
            result = PublishResult(
                success=success,
                state=PublishState.DONE if success else PublishState.FAILED,
                project_path=progress.resolution.project_path if progress.resolution else "",
                flags=progress.flags,
                output_dir=progress.output_dir,
                error=error,
                failed_step=failed_step,
                used_legacy_project_path=bool(
                    progress.resolution and progress.resolution.used_legacy
                ),
                duration_ms=duration,
            )
            if error is not None:
                logger.error(f"Publish failed during {failed_step}: {error}")
            self._last_result = result
            self._set_state(result.state)
            return result
