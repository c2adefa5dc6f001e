"""Integration tests for CLI commands."""

from pathlib import Path

from typer.testing import CliRunner

from appgraph import __version__, config
from appgraph.cli import app
from appgraph.storage import graph_file_path

runner = CliRunner()


def _analyze(path: Path, *extra: str):
    return runner.invoke(app, ["analyze", str(path), "--no-github", *extra])


class TestAnalyzeCommand:
    """Tests for 'appgraph analyze'."""

    def test_analyze_sample_app(self, sample_app_copy: Path):
        result = _analyze(sample_app_copy)

        assert result.exit_code == 0, result.output
        assert "Graph written" in result.stdout
        assert "Graph summary" in result.stdout
        assert graph_file_path(sample_app_copy).exists()

    def test_custom_output(self, sample_app_copy: Path, tmp_path: Path):
        target = tmp_path / "snap.json"
        result = _analyze(sample_app_copy, "--output", str(target))

        assert result.exit_code == 0, result.output
        assert target.exists()
        assert not graph_file_path(sample_app_copy).exists()

    def test_invalid_include_setting(self, sample_app_copy: Path):
        config.ensure_base_dirs()
        config.CONFIG_FILE.write_text("[analysis]\ninclude = 5\n", encoding="utf-8")
        result = _analyze(sample_app_copy)

        assert result.exit_code == 1
        assert "Invalid analysis settings" in result.stdout

    def test_nonexistent_path(self):
        result = runner.invoke(app, ["analyze", "/nonexistent/path"])
        assert result.exit_code != 0


class TestNodesCommand:
    """Tests for 'appgraph nodes'."""

    def test_filter_by_type(self, sample_app_copy: Path):
        _analyze(sample_app_copy)
        result = runner.invoke(app, ["nodes", str(sample_app_copy), "--type", "component"])

        assert result.exit_code == 0, result.output
        assert "Button" in result.stdout
        assert "formatCurrency" not in result.stdout
        assert "5 node(s)" in result.stdout

    def test_unknown_type(self, sample_app_copy: Path):
        _analyze(sample_app_copy)
        result = runner.invoke(app, ["nodes", str(sample_app_copy), "--type", "widget"])
        assert result.exit_code == 1

    def test_missing_snapshot(self, tmp_path: Path):
        result = runner.invoke(app, ["nodes", str(tmp_path)])

        assert result.exit_code == 1
        assert "No graph snapshot" in result.stdout


class TestExportCommand:
    """Tests for 'appgraph export'."""

    def test_export_dot(self, sample_app_copy: Path, tmp_path: Path):
        _analyze(sample_app_copy)
        out = tmp_path / "graph.dot"
        result = runner.invoke(app, ["export", str(sample_app_copy), "--format", "dot", "--output", str(out)])

        assert result.exit_code == 0, result.output
        assert "digraph AppGraph" in out.read_text(encoding="utf-8")

    def test_export_html(self, sample_app_copy: Path, tmp_path: Path):
        _analyze(sample_app_copy)
        out = tmp_path / "graph.html"
        result = runner.invoke(app, ["export", str(sample_app_copy), "-f", "html", "-o", str(out)])

        assert result.exit_code == 0, result.output
        assert "Dashboard" in out.read_text(encoding="utf-8")

    def test_invalid_format(self, sample_app_copy: Path, tmp_path: Path):
        _analyze(sample_app_copy)
        result = runner.invoke(
            app, ["export", str(sample_app_copy), "--format", "svg", "--output", str(tmp_path / "g.svg")],
        )
        assert result.exit_code == 1


class TestLLMCommands:
    """Tests for 'appgraph set-llm' and 'appgraph show-llm'."""

    def test_set_and_show(self):
        result = runner.invoke(app, ["set-llm", "-p", "groq", "-k", "secretkey123"])
        assert result.exit_code == 0, result.output
        assert "groq" in result.stdout

        result = runner.invoke(app, ["show-llm"])
        assert result.exit_code == 0
        assert "groq" in result.stdout
        assert "llama-3.3-70b-versatile" in result.stdout
        assert "secretkey123" not in result.stdout

    def test_unknown_provider(self):
        result = runner.invoke(app, ["set-llm", "-p", "skynet"])
        assert result.exit_code == 1

    def test_missing_key_warning(self):
        result = runner.invoke(app, ["set-llm", "-p", "openai"])

        assert result.exit_code == 0
        assert "No API key saved" in result.stdout


def test_version():
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert f"AppGraph v{__version__}" in result.stdout
