"""Utility modules for dotnet-publish."""

from .bindings import Binding, BindingResolver
from .buildpack_yml import parse_project_path
from .version import VersionInfo, next_major_version

__all__ = [
    "Binding",
    "BindingResolver",
    "parse_project_path",
    "VersionInfo",
    "next_major_version",
]
