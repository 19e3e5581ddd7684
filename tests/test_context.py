"""Tests for leakscan.context: FileContext, create_context, load_contexts, stats."""

from pathlib import Path

from leakscan.context import (
    FileContext,
    count_tree_stats,
    create_context,
    get_line_col,
    get_source_span,
    load_contexts,
)
from leakscan.parser import parse_bytes
from leakscan.syntax.tree import NodeKind


def _context(source: bytes) -> FileContext:
    return FileContext(path=Path("A.java"), source=source, tree=parse_bytes(source))


def test_count_tree_stats():
    tree = parse_bytes(b"class A { A() { } void f() { } }")
    nodes, methods = count_tree_stats(tree.root_node)
    assert nodes > 1
    assert methods == 2


def test_create_context_reads_and_parses(tmp_path):
    java_file = tmp_path / "Main.java"
    java_file.write_bytes(b"class Main { }\n")
    ctx = create_context(java_file)
    assert ctx is not None
    assert ctx.path == java_file
    assert ctx.source == b"class Main { }\n"
    assert ctx.has_parse_errors is False


def test_create_context_nonexistent():
    assert create_context(Path("/nonexistent/Main.java")) is None


def test_create_context_malformed_still_returns_context(tmp_path):
    java_file = tmp_path / "Bad.java"
    java_file.write_bytes(b"class Bad { void f( { }\n")
    ctx = create_context(java_file)
    assert ctx is not None
    assert ctx.has_parse_errors is True


def test_load_contexts_skips_unreadable(tmp_path):
    good = tmp_path / "Good.java"
    good.write_bytes(b"class Good { }")
    contexts = load_contexts([good, tmp_path / "Missing.java"])
    assert [c.path for c in contexts] == [good]


def test_syntax_tree_is_built_once():
    ctx = _context(b"class A { void f() { int x = 1; } }")
    first = ctx.syntax_tree
    assert ctx.syntax_tree is first
    assert first.root.kind is NodeKind.COMPILATION_UNIT


def test_span_and_line_col_of_declarator():
    source = b"class A {\n  void f() {\n    int count = 1;\n  }\n}\n"
    ctx = _context(source)
    declarator = next(n for n in ctx.syntax_tree.nodes if n.kind is NodeKind.VARIABLE_DECLARATOR)
    assert get_source_span(ctx, declarator) == "count = 1"
    assert get_line_col(declarator) == (3, 9)
    assert get_line_col(declarator, one_based=False) == (2, 8)
