"""Publish policy - path validation and command line construction.

Security measures:
- Project path must stay inside the working directory
- Symlinked working directories and project paths are rejected
- The output location is owned by the orchestrator and cannot be overridden
"""

from __future__ import annotations

import os
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Final

DEFAULT_CONFIGURATION: Final[str] = "Release"
DEFAULT_RUNTIME: Final[str] = "linux-x64"

CONFIGURATION_FLAGS: Final[frozenset[str]] = frozenset({"-c", "--configuration"})
RUNTIME_FLAGS: Final[frozenset[str]] = frozenset({"-r", "--runtime"})
SELF_CONTAINED_FLAGS: Final[frozenset[str]] = frozenset(
    {"--self-contained", "--sc", "--no-self-contained"}
)
OUTPUT_FLAGS: Final[frozenset[str]] = frozenset({"-o", "--output"})


def _flag_name(arg: str) -> str:
    """Flag name without an inline value (--runtime=linux-x64 → --runtime)."""
    return arg.split("=", 1)[0] if arg.startswith("-") else arg


def contains_flag(flags: Sequence[str], names: frozenset[str]) -> bool:
    """Whether any of the given flag names appear in flags."""
    return any(_flag_name(flag) in names for flag in flags)


@dataclass
class PublishPolicy:
    """Validation policy for a publish run rooted at a working directory."""

    working_dir: str

    def __post_init__(self) -> None:
        """Canonicalize working directory."""
        if not self.working_dir:
            raise ValueError("Empty working_dir")
        abs_path = os.path.abspath(self.working_dir)
        if os.path.islink(abs_path):
            raise ValueError(f"Symlink not allowed in working_dir: {self.working_dir}")
        self.working_dir = abs_path

    def validate_project_path(self, project_path: str) -> str:
        """Validate project path is within the working directory.

        Args:
            project_path: Path relative to the working directory ("" for the root)

        Returns:
            Validated absolute path

        Raises:
            ValueError: If path escapes the working directory or is a symlink
        """
        if os.path.isabs(project_path):
            raise ValueError(f"Project path must be relative: {project_path}")

        candidate = os.path.normpath(os.path.join(self.working_dir, project_path))
        try:
            common = os.path.commonpath([candidate, self.working_dir])
        except ValueError as e:
            raise ValueError(f"Project path outside working directory: {project_path}") from e
        if common != self.working_dir:
            raise ValueError(f"Project path outside working directory: {project_path}")

        if candidate != self.working_dir and os.path.islink(candidate):
            raise ValueError(f"Symlink not allowed in project_path: {project_path}")

        return candidate

    def validate_flags(self, flags: Sequence[str]) -> list[str]:
        """Validate user-supplied publish flags.

        Raises:
            ValueError: If flags try to redirect the publish output
        """
        if contains_flag(flags, OUTPUT_FLAGS):
            raise ValueError(
                "Publish output location is managed by the buildpack; "
                "remove -o/--output from the publish flags"
            )
        return list(flags)

    def get_publish_command(
        self,
        project_path: str,
        output_dir: str,
        flags: Sequence[str] = (),
        dotnet: str = "dotnet",
    ) -> list[str]:
        """Build validated `dotnet publish` command line.

        Defaults for configuration, runtime and self-contained apply only when
        the user flags do not set them; user flags follow verbatim.

        Args:
            project_path: Project path relative to the working directory
            output_dir: Publish output directory
            flags: Additional user flags
            dotnet: dotnet executable

        Returns:
            Complete command line as list
        """
        validated_project = self.validate_project_path(project_path)
        validated_flags = self.validate_flags(flags)

        command = [dotnet, "publish", validated_project]
        if not contains_flag(validated_flags, CONFIGURATION_FLAGS):
            command.extend(["--configuration", DEFAULT_CONFIGURATION])
        if not contains_flag(validated_flags, RUNTIME_FLAGS):
            command.extend(["--runtime", DEFAULT_RUNTIME])
        if not contains_flag(validated_flags, SELF_CONTAINED_FLAGS):
            command.extend(["--self-contained", "false"])
        command.extend(["--output", output_dir])
        command.extend(validated_flags)
        return command
