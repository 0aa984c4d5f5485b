"""Publish state management and result types.

State machine for a publish run:
IDLE → RESOLVING_PROJECT_PATH → RESOLVING_FLAGS → STAGING_CREDENTIALS
     → CREATING_OUTPUT → PUBLISHING → REPLACING_SOURCE → REMOVING_OUTPUT → DONE

Any state may transition to FAILED (or CANCELLED on asyncio cancellation).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..errors import PublishError, PublishFailedError


class PublishState(str, Enum):
    """Publish pipeline states."""

    IDLE = "idle"
    RESOLVING_PROJECT_PATH = "resolving_project_path"
    RESOLVING_FLAGS = "resolving_flags"
    STAGING_CREDENTIALS = "staging_credentials"
    CREATING_OUTPUT = "creating_output"
    PUBLISHING = "publishing"
    REPLACING_SOURCE = "replacing_source"
    REMOVING_OUTPUT = "removing_output"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (PublishState.DONE, PublishState.FAILED, PublishState.CANCELLED)


class DiagnosticSeverity(str, Enum):
    """MSBuild diagnostic severity levels."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass
class PublishDiagnostic:
    """Parsed MSBuild diagnostic (error/warning) from publish output."""

    severity: DiagnosticSeverity
    code: str
    message: str
    file: str | None = None
    line: int | None = None
    column: int | None = None
    project: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "severity": self.severity.value,
            "code": self.code,
            "message": self.message,
        }
        if self.file:
            result["file"] = self.file
        if self.line is not None:
            result["line"] = self.line
        if self.column is not None:
            result["column"] = self.column
        if self.project:
            result["project"] = self.project
        return result


# Format: path(line,col): severity code: message [project]
MSBUILD_DIAGNOSTIC_PATTERN = re.compile(
    r"^(?P<file>[^(]+)\((?P<line>\d+),(?P<col>\d+)\):\s*"
    r"(?P<severity>error|warning|info)\s+(?P<code>\w+):\s*"
    r"(?P<message>.+?)(?:\s+\[(?P<project>[^\]]+)\])?$",
    re.IGNORECASE,
)

# Format without location: severity code: message
MSBUILD_SIMPLE_PATTERN = re.compile(
    r"^(?P<severity>error|warning|info)\s+(?P<code>\w+):\s*(?P<message>.+)$",
    re.IGNORECASE,
)


def parse_msbuild_output(output: str) -> list[PublishDiagnostic]:
    """Parse `dotnet publish` console output into structured diagnostics.

    Args:
        output: Combined publish output

    Returns:
        List of parsed diagnostics, in output order
    """
    diagnostics: list[PublishDiagnostic] = []

    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue

        match = MSBUILD_DIAGNOSTIC_PATTERN.match(line)
        if match:
            diagnostics.append(
                PublishDiagnostic(
                    severity=DiagnosticSeverity(match.group("severity").lower()),
                    code=match.group("code"),
                    message=match.group("message"),
                    file=match.group("file"),
                    line=int(match.group("line")),
                    column=int(match.group("col")),
                    project=match.group("project"),
                )
            )
            continue

        match = MSBUILD_SIMPLE_PATTERN.match(line)
        if match:
            diagnostics.append(
                PublishDiagnostic(
                    severity=DiagnosticSeverity(match.group("severity").lower()),
                    code=match.group("code"),
                    message=match.group("message"),
                )
            )

    return diagnostics


@dataclass
class PublishResult:
    """Outcome of one orchestrated publish run."""

    success: bool
    state: PublishState
    project_path: str = ""
    flags: tuple[str, ...] = ()
    output_dir: str | None = None
    error: PublishError | None = None
    failed_step: str | None = None
    used_legacy_project_path: bool = False
    duration_ms: float = 0.0
    cancelled: bool = field(default=False)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "success": self.success,
            "state": self.state.value,
            "projectPath": self.project_path,
            "flags": list(self.flags),
            "durationMs": round(self.duration_ms, 2),
        }
        if self.used_legacy_project_path:
            result["usedLegacyProjectPath"] = True
        if self.error is not None:
            result["error"] = self.error.to_dict()
        if self.failed_step:
            result["failedStep"] = self.failed_step
        if self.cancelled:
            result["cancelled"] = True
        return result

    def to_summary(self) -> str:
        """Generate human-readable summary."""
        status = "[OK] Publish succeeded" if self.success else "[FAILED] Publish failed"
        if self.cancelled:
            status = "[CANCELLED] Publish cancelled"

        parts = [
            status,
            f"  Project path: {self.project_path or '.'}",
            f"  Duration: {self.duration_ms:.0f}ms",
        ]
        if self.flags:
            parts.append(f"  Flags: {' '.join(self.flags)}")
        if self.failed_step:
            parts.append(f"  Failed step: {self.failed_step}")
        if self.error is not None:
            parts.append(f"  Error: {self.error}")

        if isinstance(self.error, PublishFailedError):
            errors = self.error.errors
            for err in errors[:5]:
                location = ""
                if err.file:
                    location = f"{err.file}"
                    if err.line:
                        location += f"({err.line},{err.column or 0})"
                    location += ": "
                parts.append(f"    {location}{err.code}: {err.message}")
            if len(errors) > 5:
                parts.append(f"    ... and {len(errors) - 5} more errors")

        return "\n".join(parts)
