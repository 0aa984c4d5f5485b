"""Publish orchestration for the .NET publish buildpack.

Provides the build-stage pipeline:
- Project path and publish flag resolution (env overrides, legacy buildpack.yml)
- Optional NuGet.Config staging from a service binding, always released
- `dotnet publish` into a uniquely named temporary directory
- Destructive replacement of the working directory with the publish output
"""

from .credentials import StagedCredential, stage_nuget_config
from .orchestrator import EXCLUDED_FILES, PublishOrchestrator
from .policy import PublishPolicy
from .process import PublishProcess
from .source import SourceReplacer
from .state import PublishDiagnostic, PublishResult, PublishState, parse_msbuild_output

__all__ = [
    "EXCLUDED_FILES",
    "PublishOrchestrator",
    "PublishPolicy",
    "PublishProcess",
    "PublishResult",
    "PublishState",
    "PublishDiagnostic",
    "parse_msbuild_output",
    "SourceReplacer",
    "StagedCredential",
    "stage_nuget_config",
]
