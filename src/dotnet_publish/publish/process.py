"""`dotnet publish` process execution.

Runs the publish tool-chain as a single step, streaming its output to the
logger. Failures are surfaced as PublishFailedError and never retried:
publish failures are typically deterministic (compile errors).
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections import deque
from collections.abc import Mapping, Sequence

from ..errors import PublishFailedError
from .policy import PublishPolicy
from .state import parse_msbuild_output

logger = logging.getLogger(__name__)

# Output kept for diagnostics on failure (security: prevent unbounded memory)
MAX_TAIL_LINES: int = 2_000
MAX_OUTPUT_LINE: int = 10_000  # 10KB per line


class PublishProcess:
    """Executes `dotnet publish` for a resolved configuration."""

    def __init__(
        self,
        dotnet: str = "dotnet",
        base_env: Mapping[str, str] | None = None,
    ):
        """Initialize publish process.

        Args:
            dotnet: dotnet executable name or path
            base_env: Environment for the child process (defaults to os.environ)
        """
        self._dotnet = dotnet
        self._base_env = base_env

    def _child_env(self, toolchain_root: str) -> dict[str, str]:
        env = dict(os.environ if self._base_env is None else self._base_env)
        if toolchain_root:
            env["DOTNET_ROOT"] = toolchain_root
            path = env.get("PATH", "")
            env["PATH"] = os.pathsep.join(p for p in (toolchain_root, path) if p)
        return env

    async def _read_line(self, stream: asyncio.StreamReader) -> tuple[bytes, bool]:
        """Read one output line, keeping at most MAX_OUTPUT_LINE bytes of it.

        Lines longer than the stream buffer limit are drained in chunks.

        Returns:
            Line bytes (empty at EOF) and whether the line was cut short
        """
        kept = bytearray()
        truncated = False
        while True:
            try:
                chunk = await stream.readuntil(b"\n")
                done = True
            except asyncio.IncompleteReadError as e:
                chunk = e.partial
                done = True
            except asyncio.LimitOverrunError as e:
                chunk = await stream.read(e.consumed)
                done = not chunk
            room = MAX_OUTPUT_LINE - len(kept)
            if len(chunk) > room:
                truncated = True
            kept += chunk[: max(room, 0)]
            if done:
                return bytes(kept), truncated

    async def _stream(self, stream: asyncio.StreamReader | None, tail: deque[str]) -> None:
        if stream is None:
            return
        while True:
            line, truncated = await self._read_line(stream)
            if not line:
                break
            decoded = line.decode("utf-8", errors="replace").rstrip("\r\n")
            if truncated or len(decoded) > MAX_OUTPUT_LINE:
                decoded = decoded[:MAX_OUTPUT_LINE] + "...[truncated]"
            logger.info(f"      {decoded}")
            tail.append(decoded)

    async def _kill(self, process: asyncio.subprocess.Process) -> None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
        await process.wait()

    async def execute(
        self,
        working_dir: str,
        toolchain_root: str,
        project_path: str,
        output_dir: str,
        flags: Sequence[str],
    ) -> None:
        """Run `dotnet publish`, writing the artifact into output_dir.

        Args:
            working_dir: Application working directory (process cwd)
            toolchain_root: DOTNET_ROOT for the child process
            project_path: Project path relative to working_dir
            output_dir: Publish output directory
            flags: Additional user flags

        Raises:
            PublishFailedError: If the command is invalid, cannot be launched,
                its output cannot be read, or it exits non-zero
        """
        policy = PublishPolicy(working_dir)
        try:
            command = policy.get_publish_command(
                project_path, output_dir, flags, dotnet=self._dotnet
            )
        except ValueError as e:
            raise PublishFailedError(f"invalid publish configuration: {e}") from e

        logger.info(f"    Running '{' '.join(command[1:])}'")

        tail: deque[str] = deque(maxlen=MAX_TAIL_LINES)
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                cwd=policy.working_dir,
                env=self._child_env(toolchain_root),
            )
        except OSError as e:
            raise PublishFailedError(f"failed to execute dotnet publish: {e}") from e

        try:
            await self._stream(process.stdout, tail)
            exit_code = await process.wait()
        except asyncio.CancelledError:
            await self._kill(process)
            raise
        except Exception as e:
            await self._kill(process)
            raise PublishFailedError(f"failed to read dotnet publish output: {e}") from e

        if exit_code != 0:
            output = "\n".join(tail)
            raise PublishFailedError(
                f"failed to execute dotnet publish: exit status {exit_code}",
                diagnostics=parse_msbuild_output(output),
                exit_code=exit_code,
            )
