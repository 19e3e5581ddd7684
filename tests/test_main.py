"""Tests for the Typer CLI."""

from pathlib import Path

from typer.testing import CliRunner

from leakscan.main import app

runner = CliRunner()

LEAKY = """
class Leaky {
    void f() throws Exception {
        java.io.FileInputStream in = new java.io.FileInputStream("data");
        consume(in);
    }
    void consume(Object o) { }
}
"""

CLEAN = """
class Clean {
    void f() throws Exception {
        try (java.io.FileInputStream in = new java.io.FileInputStream("data")) {
            in.read();
        }
    }
}
"""


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


def test_clean_file_exits_zero(tmp_path):
    target = _write(tmp_path / "Clean.java", CLEAN)
    result = runner.invoke(app, ["analyze", str(target), "--plain"])
    assert result.exit_code == 0
    assert "No findings." in result.output


def test_strict_mode_reports_and_exits_one(tmp_path):
    target = _write(tmp_path / "Leaky.java", LEAKY)
    assert runner.invoke(app, ["analyze", str(target), "--plain"]).exit_code == 0

    result = runner.invoke(app, ["analyze", str(target), "--plain", "--strict"])
    assert result.exit_code == 1
    assert "Leaky.java:4:" in result.output
    assert "[close-resources]" in result.output


def test_directory_scan_with_rich_output(tmp_path):
    _write(tmp_path / "src" / "Clean.java", CLEAN)
    _write(tmp_path / "src" / "Leaky.java", LEAKY)
    result = runner.invoke(app, ["analyze", str(tmp_path), "--strict", "--verbose"])
    assert result.exit_code == 1
    assert "Leaky.java" in result.output
    assert "Files Summary" in result.output
    assert "try-with-resources" in result.output


def test_rule_selection(tmp_path):
    target = _write(tmp_path / "Leaky.java", LEAKY)
    result = runner.invoke(app, ["analyze", str(target), "--plain", "--strict", "-r", "cancel-timers"])
    assert result.exit_code == 0


def test_unknown_rule_is_rejected(tmp_path):
    target = _write(tmp_path / "Clean.java", CLEAN)
    result = runner.invoke(app, ["analyze", str(target), "-r", "bogus"])
    assert result.exit_code == 2


def test_non_java_file_is_rejected(tmp_path):
    target = _write(tmp_path / "notes.txt", "hello")
    result = runner.invoke(app, ["analyze", str(target)])
    assert result.exit_code == 2


def test_list_rules():
    result = runner.invoke(app, ["list-rules"])
    assert result.exit_code == 0
    assert "close-resources" in result.output
    assert "cancel-timers" in result.output
