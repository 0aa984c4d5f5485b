"""Tests for NuGet.Config staging."""

import os
import stat
from unittest.mock import MagicMock

import pytest

from dotnet_publish.errors import BindingResolutionError
from dotnet_publish.publish.credentials import (
    NUGET_CONFIG_FILENAME,
    StagedCredential,
    stage_nuget_config,
)
from dotnet_publish.utils.bindings import BindingResolver

NUGET_CONFIG = """<?xml version="1.0" encoding="utf-8"?>
<configuration>
  <packageSourceCredentials>
    <private><add key="ClearTextPassword" value="s3cr3t" /></private>
  </packageSourceCredentials>
</configuration>
"""


class TestStageNugetConfig:
    """Tests for stage_nuget_config."""

    def test_no_binding(self, working_dir, platform_dir):
        """Test nothing is staged without a nuget binding."""
        staged = stage_nuget_config(str(platform_dir), str(working_dir), BindingResolver())

        assert staged is None
        assert not (working_dir / NUGET_CONFIG_FILENAME).exists()

    def test_copies_config(self, working_dir, platform_dir, make_binding):
        """Test the bound file is copied byte-for-byte under its exact name."""
        make_binding("nuget", entries={"NuGet.Config": NUGET_CONFIG})

        staged = stage_nuget_config(str(platform_dir), str(working_dir), BindingResolver())

        assert staged is not None
        assert staged.path == os.path.join(str(working_dir), "NuGet.Config")
        assert (working_dir / "NuGet.Config").read_text() == NUGET_CONFIG
        assert "NuGet.Config" in os.listdir(working_dir)

    def test_restrictive_permissions(self, working_dir, platform_dir, make_binding):
        """Test the staged file is owner read/write only."""
        make_binding("nuget", entries={"NuGet.Config": NUGET_CONFIG})

        staged = stage_nuget_config(str(platform_dir), str(working_dir), BindingResolver())

        mode = stat.S_IMODE(os.stat(staged.path).st_mode)
        assert mode == 0o600

    def test_name_is_case_sensitive(self, working_dir, platform_dir, make_binding):
        """Test a differently cased entry does not count."""
        make_binding("nuget", entries={"nuget.config": NUGET_CONFIG})

        with pytest.raises(BindingResolutionError, match="NuGet.Config"):
            stage_nuget_config(str(platform_dir), str(working_dir), BindingResolver())

    def test_binding_without_config(self, working_dir, platform_dir, make_binding):
        """Test a nuget binding missing its file is an error."""
        make_binding("nuget", entries={"username": "me"})

        with pytest.raises(BindingResolutionError):
            stage_nuget_config(str(platform_dir), str(working_dir), BindingResolver())

    def test_ambiguous_bindings(self, working_dir, platform_dir, make_binding):
        """Test more than one nuget binding is an error."""
        make_binding("one", entries={"NuGet.Config": NUGET_CONFIG})
        make_binding("two", entries={"NuGet.Config": NUGET_CONFIG})

        with pytest.raises(BindingResolutionError):
            stage_nuget_config(str(platform_dir), str(working_dir), BindingResolver())
        assert not (working_dir / NUGET_CONFIG_FILENAME).exists()

    def test_uses_given_resolver(self, working_dir):
        """Test lookup goes through the injected resolver."""
        resolver = MagicMock()
        resolver.resolve_one.return_value = None

        assert stage_nuget_config("/platform", str(working_dir), resolver) is None
        resolver.resolve_one.assert_called_once_with("nuget", platform_dir="/platform")

    def test_write_failure(self, working_dir, platform_dir, make_binding):
        """Test failure to write into the working directory is an error."""
        make_binding("nuget", entries={"NuGet.Config": NUGET_CONFIG})
        missing = working_dir / "does-not-exist"

        with pytest.raises(BindingResolutionError, match="could not stage"):
            stage_nuget_config(str(platform_dir), str(missing), BindingResolver())


class TestStagedCredential:
    """Tests for the release handle."""

    def test_release_removes_file(self, tmp_path):
        """Test release deletes the staged file."""
        path = tmp_path / "NuGet.Config"
        path.write_text("x")
        staged = StagedCredential(str(path))

        staged.release()

        assert not path.exists()
        assert staged.released

    def test_release_is_idempotent(self, tmp_path):
        """Test releasing twice, or after the file vanished, is fine."""
        path = tmp_path / "NuGet.Config"
        path.write_text("x")
        staged = StagedCredential(str(path))

        path.unlink()
        staged.release()
        staged.release()

        assert staged.released

    def test_context_manager(self, tmp_path):
        """Test the handle releases on exit, even on error."""
        path = tmp_path / "NuGet.Config"
        path.write_text("x")

        with pytest.raises(RuntimeError):
            with StagedCredential(str(path)):
                raise RuntimeError("boom")

        assert not path.exists()
