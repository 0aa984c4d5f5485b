"""Error kinds that abort a publish run.

Every error is fatal to the current run: none are retried or suppressed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .publish.state import PublishDiagnostic


class PublishError(Exception):
    """Base class for every error that aborts a publish run."""

    kind = "publish_error"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {"kind": self.kind, "error": str(self)}


class ParseError(PublishError):
    """buildpack.yml exists but cannot be parsed."""

    kind = "parse_error"


class BindingResolutionError(PublishError):
    """Ambiguous, malformed or unreadable service binding."""

    kind = "binding_resolution_error"


class SourceRemovalError(PublishError):
    """Source cleanup or output replacement failed."""

    kind = "source_removal_error"


class TempLifecycleError(PublishError):
    """Temporary publish output directory could not be created or removed."""

    kind = "temp_lifecycle_error"


class PublishFailedError(PublishError):
    """`dotnet publish` exited non-zero or could not be launched."""

    kind = "publish_failed"

    def __init__(
        self,
        message: str,
        diagnostics: list[PublishDiagnostic] | None = None,
        exit_code: int | None = None,
    ):
        super().__init__(message)
        self.diagnostics = diagnostics or []
        self.exit_code = exit_code

    @property
    def errors(self) -> list[PublishDiagnostic]:
        """Only error-severity diagnostics."""
        return [d for d in self.diagnostics if d.severity.value == "error"]

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["diagnostics"] = [d.to_dict() for d in self.diagnostics]
        if self.exit_code is not None:
            result["exitCode"] = self.exit_code
        return result
