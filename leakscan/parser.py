# Tree-sitter setup for Java: build the parser and turn .java files into trees.

import logging
from pathlib import Path
from typing import Optional

import tree_sitter
from tree_sitter import Language
from tree_sitter_java import language as _java_language_capsule

logger = logging.getLogger(__name__)

_JAVA_LANGUAGE = Language(_java_language_capsule())


def get_java_language() -> Language:
    """Return the Tree-sitter Language object for Java."""
    return _JAVA_LANGUAGE


def create_parser() -> tree_sitter.Parser:
    """Create a Tree-sitter Parser configured for Java."""
    return tree_sitter.Parser(_JAVA_LANGUAGE)


def first_error_node(node: tree_sitter.Node) -> Optional[tree_sitter.Node]:
    """Return the first ERROR or MISSING node in document order, or None."""
    if node.is_error or node.is_missing:
        return node
    if not node.has_error:
        return None
    for child in node.children:
        found = first_error_node(child)
        if found is not None:
            return found
    return None


def parse_bytes(
    source: bytes,
    parser: Optional[tree_sitter.Parser] = None,
) -> tree_sitter.Tree:
    """
    Parse Java source bytes into a tree.

    Syntax errors do not raise: tree-sitter recovers and marks the damaged
    region with ERROR/MISSING nodes. The first such location is logged.
    """
    if parser is None:
        parser = create_parser()
    tree = parser.parse(source)
    error = first_error_node(tree.root_node)
    if error is not None:
        row, col = error.start_point
        logger.warning(
            "Parse completed with errors: first %s at line %d, column %d",
            "MISSING" if error.is_missing else "ERROR",
            row + 1,
            col + 1,
        )
    else:
        logger.debug("Parse succeeded: root=%s", tree.root_node.type)
    return tree


def parse_file(path: Path, parser: Optional[tree_sitter.Parser] = None) -> Optional[tree_sitter.Tree]:
    """
    Parse a Java source file.

    Returns:
        The parse tree, or None if the file could not be read.
    """
    try:
        source = path.read_bytes()
    except OSError as e:
        logger.error("Failed to read file %s: %s", path, e)
        return None
    tree = parse_bytes(source, parser=parser)
    logger.info("Parsed file %s: success=%s", path, not tree.root_node.has_error)
    return tree
