"""Tests for Java source discovery."""

from pathlib import Path

import pytest

from leakscan.traversal import (
    DEFAULT_IGNORE_DIRS,
    TEST_DIRS,
    find_java_files,
    is_java_file,
    should_ignore_directory,
)


def _touch(path: Path, content: str = "class X { }\n") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


class TestFileTypeChecks:
    def test_is_java_file(self):
        assert is_java_file(Path("Main.java"))
        assert is_java_file(Path("src/main/java/App.JAVA"))
        assert not is_java_file(Path("Main.class"))
        assert not is_java_file(Path("build.gradle"))
        assert not is_java_file(Path("Main.kt"))

    def test_should_ignore_directory_uses_name_only(self):
        assert should_ignore_directory(Path("/repo/target"), {"target"})
        assert not should_ignore_directory(Path("/target/src"), {"target"})


class TestFindJavaFiles:
    def test_finds_nested_sources_sorted(self, tmp_path):
        b = _touch(tmp_path / "src" / "main" / "java" / "b" / "B.java")
        a = _touch(tmp_path / "src" / "main" / "java" / "a" / "A.java")
        _touch(tmp_path / "README.md", "# readme")
        assert find_java_files(tmp_path) == sorted([a.resolve(), b.resolve()])

    def test_skips_build_output(self, tmp_path):
        kept = _touch(tmp_path / "src" / "App.java")
        _touch(tmp_path / "target" / "generated" / "Gen.java")
        _touch(tmp_path / "build" / "Out.java")
        _touch(tmp_path / ".git" / "Hook.java")
        assert find_java_files(tmp_path) == [kept.resolve()]

    def test_skips_test_trees_unless_requested(self, tmp_path):
        main = _touch(tmp_path / "src" / "main" / "java" / "App.java")
        test = _touch(tmp_path / "src" / "test" / "java" / "AppTest.java")
        assert find_java_files(tmp_path) == [main.resolve()]
        assert find_java_files(tmp_path, include_tests=True) == sorted([main.resolve(), test.resolve()])

    def test_custom_ignore_dirs_replace_defaults(self, tmp_path):
        gen = _touch(tmp_path / "target" / "Gen.java")
        _touch(tmp_path / "generated" / "Skip.java")
        assert find_java_files(tmp_path, ignore_dirs={"generated"}) == [gen.resolve()]

    def test_filter_fn(self, tmp_path):
        keep = _touch(tmp_path / "KeepMe.java")
        _touch(tmp_path / "DropMe.java")
        found = find_java_files(tmp_path, filter_fn=lambda p: p.name.startswith("Keep"))
        assert found == [keep.resolve()]

    def test_missing_root_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            find_java_files(tmp_path / "nope")

    def test_file_root_raises(self, tmp_path):
        f = _touch(tmp_path / "A.java")
        with pytest.raises(NotADirectoryError):
            find_java_files(f)

    def test_default_sets_are_disjoint(self):
        assert "target" in DEFAULT_IGNORE_DIRS
        assert "test" in TEST_DIRS
        assert not DEFAULT_IGNORE_DIRS & TEST_DIRS
