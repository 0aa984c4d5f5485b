"""Pytest fixtures for dotnet-publish tests."""

import os
import sys

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from dotnet_publish.config import BuildContext  # noqa: E402


@pytest.fixture
def working_dir(tmp_path):
    """Application working directory with an empty buildpack.yml and some source."""
    workdir = tmp_path / "workspace"
    workdir.mkdir()
    (workdir / "buildpack.yml").write_text("")
    (workdir / "Program.cs").write_text("class Program { static void Main() {} }\n")
    (workdir / "App.csproj").write_text("<Project Sdk=\"Microsoft.NET.Sdk\" />\n")
    src = workdir / "src" / "Lib"
    src.mkdir(parents=True)
    (src / "Lib.cs").write_text("namespace Lib;\n")
    return workdir


@pytest.fixture
def platform_dir(tmp_path):
    """Empty platform directory."""
    platform = tmp_path / "platform"
    platform.mkdir()
    return platform


@pytest.fixture
def make_binding(platform_dir):
    """Factory for Kubernetes-style bindings under <platform>/bindings."""

    def _make(name, binding_type="nuget", entries=None, provider=None):
        binding = platform_dir / "bindings" / name
        binding.mkdir(parents=True)
        (binding / "type").write_text(binding_type)
        if provider is not None:
            (binding / "provider").write_text(provider)
        for entry_name, content in (entries or {}).items():
            (binding / entry_name).write_text(content)
        return binding

    return _make


@pytest.fixture
def build_context(working_dir, platform_dir):
    """Build context over the working and platform fixtures."""
    return BuildContext(
        working_dir=str(working_dir),
        platform_path=str(platform_dir),
        buildpack_name="Some Buildpack",
        buildpack_version="1.2.3",
    )


@pytest.fixture
def sample_publish_output():
    """MSBuild output from a failed publish."""
    return (
        "  Determining projects to restore...\n"
        "/workspace/Program.cs(10,5): error CS0103: The name 'x' does not exist "
        "in the current context [/workspace/App.csproj]\n"
        "/workspace/Program.cs(3,1): warning CS0168: The variable 'e' is declared "
        "but never used [/workspace/App.csproj]\n"
        "\n"
        "Build FAILED.\n"
    )
