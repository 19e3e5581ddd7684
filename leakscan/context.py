# Per-file analysis context: file path, source bytes, tree-sitter tree and the
# lowered SyntaxTree the leak rules walk. Reading and parsing failures are
# handled here so rules only ever see a usable tree.

import logging
from functools import cached_property
from pathlib import Path
from typing import Optional

from tree_sitter import Node as TSNode
from tree_sitter import Parser, Tree

from leakscan.parser import create_parser, parse_bytes
from leakscan.syntax.builder import build_syntax_tree
from leakscan.syntax.tree import SyntaxNode, SyntaxTree

logger = logging.getLogger(__name__)

_METHOD_TYPES = ("method_declaration", "constructor_declaration")


def count_tree_stats(root: TSNode) -> tuple[int, int]:
    """
    Return (total node count, method/constructor count) for the tree.

    Useful for logging how much was parsed.
    """
    nodes = 0
    methods = 0
    stack = [root]
    while stack:
        node = stack.pop()
        nodes += 1
        if node.type in _METHOD_TYPES:
            methods += 1
        stack.extend(node.children)
    return nodes, methods


class FileContext:
    """
    Per-file state for static analysis: path, raw source bytes, and AST.

    Rules use context.syntax_tree; the arena is built on first access and
    shared by every rule that runs on this file.
    """

    def __init__(
        self,
        path: Path,
        source: bytes,
        tree: Tree,
        *,
        has_parse_errors: bool = False,
    ) -> None:
        self.path = path
        self.source = source
        self.tree = tree
        self.has_parse_errors = has_parse_errors

    @property
    def root_node(self) -> TSNode:
        return self.tree.root_node

    @cached_property
    def syntax_tree(self) -> SyntaxTree:
        return build_syntax_tree(self.source, self.tree)


def get_source_span(context: FileContext, node: SyntaxNode) -> str:
    """Source text covered by an arena node, decoded with errors="replace"."""
    return context.source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")


def get_line_col(node: SyntaxNode, one_based: bool = True) -> tuple[int, int]:
    """
    Return (line, column) for the node's start position.

    Points are stored 0-based; one_based=True (default) converts for display.
    """
    row, col = node.start_point
    if one_based:
        return row + 1, col + 1
    return row, col


def create_context(
    path: Path,
    parser: Optional[Parser] = None,
) -> Optional[FileContext]:
    """
    Read a Java file and parse it into a FileContext.

    - Unreadable file (permission, missing): returns None and logs error.
    - Malformed Java (syntax errors): still returns a FileContext and sets
      has_parse_errors=True; tree-sitter recovers around the damage.
    """
    if parser is None:
        parser = create_parser()

    try:
        source = path.read_bytes()
    except OSError as e:
        logger.error("Failed to read file %s: %s", path, e)
        return None

    tree = parse_bytes(source, parser=parser)
    has_errors = tree.root_node.has_error
    if has_errors:
        logger.warning("File %s parsed with syntax errors; AST may be incomplete", path)

    node_count, method_count = count_tree_stats(tree.root_node)
    logger.info(
        "Parsed %s: %d nodes, %d method(s)%s",
        path,
        node_count,
        method_count,
        " (with parse errors)" if has_errors else "",
    )

    return FileContext(
        path=path,
        source=source,
        tree=tree,
        has_parse_errors=has_errors,
    )


def load_contexts(
    paths: list[Path],
    parser: Optional[Parser] = None,
) -> list[FileContext]:
    """
    Read and parse multiple Java files into FileContexts.

    Unreadable files are skipped (logged). Order matches input order.
    """
    if parser is None:
        parser = create_parser()

    contexts: list[FileContext] = []
    for path in paths:
        ctx = create_context(path, parser=parser)
        if ctx is not None:
            contexts.append(ctx)
    return contexts
