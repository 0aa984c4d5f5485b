"""Tests for publish state, error kinds and result types."""

from dotnet_publish.errors import (
    BindingResolutionError,
    ParseError,
    PublishError,
    PublishFailedError,
    SourceRemovalError,
    TempLifecycleError,
)
from dotnet_publish.publish.state import (
    DiagnosticSeverity,
    PublishDiagnostic,
    PublishResult,
    PublishState,
    parse_msbuild_output,
)


class TestPublishState:
    """Tests for PublishState enum."""

    def test_state_is_string(self):
        """Test state is string enum."""
        assert isinstance(PublishState.IDLE, str)
        assert PublishState.PUBLISHING == "publishing"

    def test_terminal_states(self):
        """Test only DONE, FAILED and CANCELLED are terminal."""
        terminal = {s for s in PublishState if s.is_terminal}
        assert terminal == {PublishState.DONE, PublishState.FAILED, PublishState.CANCELLED}


class TestParseMsbuildOutput:
    """Tests for MSBuild output parsing."""

    def test_parse_detailed_error(self, sample_publish_output):
        """Test parsing error with location and project."""
        diagnostics = parse_msbuild_output(sample_publish_output)

        assert len(diagnostics) == 2
        error = diagnostics[0]
        assert error.severity == DiagnosticSeverity.ERROR
        assert error.code == "CS0103"
        assert error.file == "/workspace/Program.cs"
        assert error.line == 10
        assert error.column == 5
        assert error.project == "/workspace/App.csproj"
        assert diagnostics[1].severity == DiagnosticSeverity.WARNING

    def test_parse_simple_error(self):
        """Test parsing error without location."""
        diagnostics = parse_msbuild_output("error NETSDK1004: Assets file not found.")

        assert len(diagnostics) == 1
        assert diagnostics[0].code == "NETSDK1004"
        assert diagnostics[0].file is None

    def test_non_diagnostic_lines_ignored(self):
        """Test progress lines produce no diagnostics."""
        output = """
  Determining projects to restore...
  All projects are up-to-date for restore.
  App -> /tmp/out/App.dll
        """
        assert parse_msbuild_output(output) == []


class TestErrors:
    """Tests for error kinds."""

    def test_all_kinds_are_publish_errors(self):
        """Test every kind derives from PublishError."""
        for cls in (
            ParseError,
            BindingResolutionError,
            PublishFailedError,
            SourceRemovalError,
            TempLifecycleError,
        ):
            assert issubclass(cls, PublishError)

    def test_kinds_are_distinct(self):
        """Test callers can tell kinds apart from to_dict()."""
        kinds = {
            cls("x").to_dict()["kind"]
            for cls in (
                ParseError,
                BindingResolutionError,
                PublishFailedError,
                SourceRemovalError,
                TempLifecycleError,
            )
        }
        assert len(kinds) == 5

    def test_publish_failed_to_dict(self):
        """Test PublishFailedError carries exit code and diagnostics."""
        diags = [
            PublishDiagnostic(severity=DiagnosticSeverity.ERROR, code="CS0001", message="Oops"),
            PublishDiagnostic(severity=DiagnosticSeverity.WARNING, code="CS0168", message="Unused"),
        ]
        error = PublishFailedError("publish failed", diagnostics=diags, exit_code=1)

        d = error.to_dict()
        assert d["kind"] == "publish_failed"
        assert d["error"] == "publish failed"
        assert d["exitCode"] == 1
        assert len(d["diagnostics"]) == 2
        assert [e.code for e in error.errors] == ["CS0001"]


class TestPublishResult:
    """Tests for PublishResult dataclass."""

    def test_to_dict_success(self):
        """Test converting successful result to dict."""
        result = PublishResult(
            success=True,
            state=PublishState.DONE,
            project_path="src/App",
            flags=("--verbosity", "minimal"),
            duration_ms=1234.567,
        )

        d = result.to_dict()
        assert d["success"] is True
        assert d["state"] == "done"
        assert d["projectPath"] == "src/App"
        assert d["flags"] == ["--verbosity", "minimal"]
        assert d["durationMs"] == 1234.57
        assert "error" not in d

    def test_to_dict_failure(self):
        """Test failure carries the error kind and step."""
        result = PublishResult(
            success=False,
            state=PublishState.FAILED,
            error=ParseError("bad yaml"),
            failed_step="resolving_project_path",
        )

        d = result.to_dict()
        assert d["error"]["kind"] == "parse_error"
        assert d["failedStep"] == "resolving_project_path"

    def test_to_summary_failed_lists_errors(self, sample_publish_output):
        """Test summary includes compiler errors."""
        error = PublishFailedError(
            "failed to execute dotnet publish: exit status 1",
            diagnostics=parse_msbuild_output(sample_publish_output),
            exit_code=1,
        )
        result = PublishResult(
            success=False, state=PublishState.FAILED, error=error, failed_step="publishing"
        )

        summary = result.to_summary()
        assert "failed" in summary
        assert "CS0103" in summary
        assert "CS0168" not in summary

    def test_to_summary_root_project(self):
        """Test empty project path reads as the working directory."""
        result = PublishResult(success=True, state=PublishState.DONE)
        assert "Project path: ." in result.to_summary()
