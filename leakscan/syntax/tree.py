# Index-based syntax tree: one flat arena of nodes linked by integer indices.
# Rules filter over traverse_dfs() output instead of writing their own visitors.

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterator, Optional

from leakscan.syntax.types import StaticType


class NodeKind(Enum):
    """Closed set of node kinds the leak rules understand. Everything else is OTHER."""

    COMPILATION_UNIT = "compilation_unit"
    CLASS_BODY = "class_body"
    FUNCTION_BODY = "function_body"
    FIELD_DECLARATION = "field_declaration"
    LOCAL_VARIABLE_DECLARATION = "local_variable_declaration"
    VARIABLE_DECLARATOR = "variable_declarator"
    IDENTIFIER = "identifier"
    THIS = "this"
    METHOD_INVOCATION = "method_invocation"
    INSTANCE_CREATION = "instance_creation"
    MEMBER_REFERENCE = "member_reference"
    PROPERTY_ACCESS = "property_access"
    ASSIGNMENT = "assignment"
    RETURN = "return"
    CONSTRUCTOR_FIELD_INITIALIZER = "constructor_field_initializer"
    FIELD_FORMAL_PARAMETER = "field_formal_parameter"
    PARAMETER = "parameter"
    OTHER = "other"


# Kinds whose `arguments` link is populated.
INVOCATION_KINDS = frozenset({NodeKind.METHOD_INVOCATION, NodeKind.INSTANCE_CREATION})


@dataclass
class SyntaxNode:
    """
    One arena slot.

    Which links are set depends on kind:
    - VARIABLE_DECLARATOR: name, value (initializer), declared_type
    - METHOD_INVOCATION: name (method), target (receiver, may be None), arguments
    - INSTANCE_CREATION: name (created type), arguments
    - MEMBER_REFERENCE / PROPERTY_ACCESS: name (member), target (receiver)
    - ASSIGNMENT: left, right
    - RETURN: expression (may be None)
    - IDENTIFIER, CONSTRUCTOR_FIELD_INITIALIZER, FIELD_FORMAL_PARAMETER, PARAMETER: name
    """

    index: int
    kind: NodeKind
    grammar_type: str
    start_byte: int
    end_byte: int
    start_point: tuple[int, int]
    end_point: tuple[int, int]
    parent: Optional[int] = None
    children: list[int] = field(default_factory=list)
    name: Optional[str] = None
    target: Optional[int] = None
    value: Optional[int] = None
    left: Optional[int] = None
    right: Optional[int] = None
    expression: Optional[int] = None
    arguments: tuple[int, ...] = ()
    declared_type: Optional[StaticType] = None


class SyntaxTree:
    """Arena of SyntaxNodes for one source file. Index 0 is the root."""

    def __init__(self, source: bytes) -> None:
        self.source = source
        self.nodes: list[SyntaxNode] = []

    def __len__(self) -> int:
        return len(self.nodes)

    @property
    def root(self) -> SyntaxNode:
        return self.nodes[0]

    def node(self, index: int) -> SyntaxNode:
        return self.nodes[index]

    def add(self, node: SyntaxNode) -> SyntaxNode:
        """Append node to the arena and link it under its parent. Returns node."""
        node.index = len(self.nodes)
        self.nodes.append(node)
        if node.parent is not None:
            self.nodes[node.parent].children.append(node.index)
        return node

    def text(self, index: int) -> str:
        node = self.nodes[index]
        return self.source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")

    def ancestors(self, index: int) -> Iterator[SyntaxNode]:
        """Yield the parent chain of index, nearest first."""
        parent = self.nodes[index].parent
        while parent is not None:
            node = self.nodes[parent]
            yield node
            parent = node.parent

    def find_ancestor(
        self,
        index: int,
        predicate: Callable[[SyntaxNode], bool],
    ) -> Optional[SyntaxNode]:
        """Return the nearest ancestor satisfying predicate, or None."""
        for node in self.ancestors(index):
            if predicate(node):
                return node
        return None

    def has_ancestor(self, index: int, ancestor: int) -> bool:
        """True if ancestor is index itself or one of its ancestors."""
        if index == ancestor:
            return True
        return any(node.index == ancestor for node in self.ancestors(index))

    def traverse_dfs(self, index: int) -> list[SyntaxNode]:
        """
        Return every descendant of index in pre-order, children left to right.

        The node itself is not included. Uses an explicit stack so deeply
        nested sources do not hit the recursion limit.
        """
        result: list[SyntaxNode] = []
        stack = list(reversed(self.nodes[index].children))
        while stack:
            node = self.nodes[stack.pop()]
            result.append(node)
            stack.extend(reversed(node.children))
        return result
