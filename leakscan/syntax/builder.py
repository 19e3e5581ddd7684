# Lower a tree-sitter Java tree into a SyntaxTree arena.
#
# Only named grammar nodes are kept. Nodes the leak rules care about get a
# specific NodeKind and their role links; everything else becomes OTHER so the
# depth-first order still covers the whole file.

from __future__ import annotations

import logging
from typing import Optional

from tree_sitter import Node as TSNode
from tree_sitter import Tree

from leakscan.syntax.tree import NodeKind, SyntaxNode, SyntaxTree
from leakscan.syntax.types import UNRESOLVED, StaticType, TypeResolver, simple_name

logger = logging.getLogger(__name__)

CLASS_BODY_TYPES = frozenset({"class_body", "interface_body", "enum_body"})
TYPE_DECLARATION_TYPES = frozenset(
    {"class_declaration", "interface_declaration", "enum_declaration", "record_declaration"}
)
FUNCTION_OWNER_TYPES = frozenset(
    {
        "method_declaration",
        "constructor_declaration",
        "compact_constructor_declaration",
        "lambda_expression",
        "static_initializer",
    }
)
CONSTRUCTOR_TYPES = frozenset({"constructor_declaration", "compact_constructor_declaration"})
SUPERTYPE_CLAUSES = frozenset({"superclass", "super_interfaces", "extends_interfaces"})
COMMENT_TYPES = frozenset({"line_comment", "block_comment"})

_SIMPLE_KINDS = {
    "program": NodeKind.COMPILATION_UNIT,
    "field_declaration": NodeKind.FIELD_DECLARATION,
    "local_variable_declaration": NodeKind.LOCAL_VARIABLE_DECLARATION,
    "identifier": NodeKind.IDENTIFIER,
    "this": NodeKind.THIS,
    "method_invocation": NodeKind.METHOD_INVOCATION,
    "explicit_constructor_invocation": NodeKind.METHOD_INVOCATION,
    "object_creation_expression": NodeKind.INSTANCE_CREATION,
    "method_reference": NodeKind.MEMBER_REFERENCE,
    "field_access": NodeKind.PROPERTY_ACCESS,
    "assignment_expression": NodeKind.ASSIGNMENT,
    "return_statement": NodeKind.RETURN,
    "variable_declarator": NodeKind.VARIABLE_DECLARATOR,
}


def _text(source: bytes, node: Optional[TSNode]) -> str:
    if node is None:
        return ""
    return source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")


def _clause_types(clause: TSNode) -> list[TSNode]:
    types: list[TSNode] = []
    for child in clause.named_children:
        if child.type == "type_list":
            types.extend(child.named_children)
        else:
            types.append(child)
    return types


def collect_declared_types(root: TSNode, source: bytes) -> dict[str, list[str]]:
    """
    Map each class, interface, enum and record declared in the file to the
    simple names of its direct supertypes.
    """
    declared: dict[str, list[str]] = {}
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type in TYPE_DECLARATION_TYPES:
            name = _text(source, node.child_by_field_name("name"))
            supers: list[str] = []
            for clause in node.named_children:
                if clause.type in SUPERTYPE_CLAUSES:
                    supers.extend(simple_name(_text(source, t)) for t in _clause_types(clause))
            if name:
                declared[name] = supers
        stack.extend(node.named_children)
    return declared


def _is_function_body(node: TSNode) -> bool:
    parent = node.parent
    if parent is None or node.type not in ("block", "constructor_body"):
        return False
    if parent.type in FUNCTION_OWNER_TYPES:
        return True
    # Instance initializer blocks sit directly in a class body.
    return parent.type in CLASS_BODY_TYPES or parent.type == "enum_body_declarations"


def _is_reference_receiver(node: TSNode) -> bool:
    """`r` in `r::close` may parse as a type name; it still names the variable."""
    parent = node.parent
    if parent is None or parent.type != "method_reference":
        return False
    first = parent.named_children[0] if parent.named_children else None
    return first is not None and first.id == node.id


def _this_field_name(source: bytes, node: Optional[TSNode]) -> Optional[str]:
    """Return f for a `this.f` field access, else None."""
    if node is None or node.type != "field_access":
        return None
    obj = node.child_by_field_name("object")
    if obj is None or obj.type != "this":
        return None
    return _text(source, node.child_by_field_name("field"))


def _stored_parameters(source: bytes, constructor: TSNode) -> set[str]:
    """Names p for which the constructor body contains `this.p = p`."""
    stored: set[str] = set()
    body = constructor.child_by_field_name("body")
    if body is None:
        return stored
    stack = [body]
    while stack:
        node = stack.pop()
        if node.type == "assignment_expression":
            field_name = _this_field_name(source, node.child_by_field_name("left"))
            right = node.child_by_field_name("right")
            if field_name and right is not None and right.type == "identifier":
                if _text(source, right) == field_name:
                    stored.add(field_name)
        if node.type not in ("lambda_expression", "class_body"):
            stack.extend(node.named_children)
    return stored


class _Lowering:
    """One-shot converter; use build_syntax_tree()."""

    def __init__(self, source: bytes, resolver: TypeResolver) -> None:
        self.source = source
        self.resolver = resolver
        self.tree = SyntaxTree(source)
        self._index_of: dict[int, int] = {}
        # Innermost function owner grammar type, and the stored-parameter set
        # for the innermost constructor.
        self._owners: list[str] = []
        self._stored: list[set[str]] = []

    def run(self, root: TSNode) -> SyntaxTree:
        self._lower(root, None)
        return self.tree

    def _in_constructor(self) -> bool:
        return bool(self._owners) and self._owners[-1] in CONSTRUCTOR_TYPES

    def _new_node(self, node: TSNode, kind: NodeKind, parent: Optional[int]) -> SyntaxNode:
        return self.tree.add(
            SyntaxNode(
                index=-1,
                kind=kind,
                grammar_type=node.type,
                start_byte=node.start_byte,
                end_byte=node.end_byte,
                start_point=tuple(node.start_point),
                end_point=tuple(node.end_point),
                parent=parent,
            )
        )

    def _kind_of(self, node: TSNode) -> NodeKind:
        if node.type in CLASS_BODY_TYPES:
            return NodeKind.CLASS_BODY
        if _is_function_body(node):
            return NodeKind.FUNCTION_BODY
        if node.type == "formal_parameter":
            name = _text(self.source, node.child_by_field_name("name"))
            if self._in_constructor() and name in self._stored[-1]:
                return NodeKind.FIELD_FORMAL_PARAMETER
            return NodeKind.PARAMETER
        if node.type == "resource" and self._resource_target(node) is not None:
            return NodeKind.METHOD_INVOCATION
        if node.type == "type_identifier" and _is_reference_receiver(node):
            return NodeKind.IDENTIFIER
        return _SIMPLE_KINDS.get(node.type, NodeKind.OTHER)

    @staticmethod
    def _resource_target(node: TSNode) -> Optional[TSNode]:
        """`try (r) { }` on an existing variable implicitly calls r.close()."""
        named = node.named_children
        if len(named) == 1 and named[0].type in ("identifier", "field_access"):
            return named[0]
        return None

    def _lower(self, node: TSNode, parent: Optional[int]) -> None:
        if node.type in COMMENT_TYPES:
            return
        parent_index = parent
        if node.type == "assignment_expression" and self._in_constructor():
            field_name = _this_field_name(self.source, node.child_by_field_name("left"))
            if field_name:
                wrapper = self._new_node(node, NodeKind.CONSTRUCTOR_FIELD_INITIALIZER, parent)
                wrapper.name = field_name
                parent_index = wrapper.index

        arena_node = self._new_node(node, self._kind_of(node), parent_index)
        self._index_of[node.id] = arena_node.index

        is_owner = node.type in FUNCTION_OWNER_TYPES
        if is_owner:
            self._owners.append(node.type)
            if node.type in CONSTRUCTOR_TYPES:
                self._stored.append(_stored_parameters(self.source, node))
        try:
            for child in node.named_children:
                self._lower(child, arena_node.index)
        finally:
            if is_owner:
                self._owners.pop()
                if node.type in CONSTRUCTOR_TYPES:
                    self._stored.pop()

        self._link(node, arena_node)

    def _ref(self, node: Optional[TSNode]) -> Optional[int]:
        if node is None:
            return None
        return self._index_of.get(node.id)

    def _arguments(self, node: TSNode) -> tuple[int, ...]:
        args = node.child_by_field_name("arguments")
        if args is None:
            return ()
        return tuple(
            self._index_of[a.id] for a in args.named_children if a.id in self._index_of
        )

    def _link(self, node: TSNode, arena_node: SyntaxNode) -> None:
        """Fill role links once the children have arena indices."""
        kind = arena_node.kind
        field = node.child_by_field_name
        if kind in (NodeKind.IDENTIFIER, NodeKind.PARAMETER, NodeKind.FIELD_FORMAL_PARAMETER):
            name_node = node if kind is NodeKind.IDENTIFIER else field("name")
            arena_node.name = _text(self.source, name_node)
        elif kind is NodeKind.METHOD_INVOCATION and node.type == "resource":
            arena_node.name = "close"
            arena_node.target = self._ref(self._resource_target(node))
        elif kind is NodeKind.METHOD_INVOCATION:
            if node.type == "explicit_constructor_invocation":
                arena_node.name = _text(self.source, field("constructor"))
            else:
                arena_node.name = _text(self.source, field("name"))
            arena_node.target = self._ref(field("object"))
            arena_node.arguments = self._arguments(node)
        elif kind is NodeKind.INSTANCE_CREATION:
            arena_node.name = simple_name(_text(self.source, field("type")))
            arena_node.arguments = self._arguments(node)
        elif kind is NodeKind.PROPERTY_ACCESS:
            arena_node.name = _text(self.source, field("field"))
            arena_node.target = self._ref(field("object"))
        elif kind is NodeKind.MEMBER_REFERENCE:
            named = node.named_children
            if named:
                arena_node.target = self._ref(named[0])
            last = named[-1] if len(named) > 1 else None
            arena_node.name = _text(self.source, last) if last is not None and last.type == "identifier" else "new"
        elif kind is NodeKind.ASSIGNMENT:
            arena_node.left = self._ref(field("left"))
            arena_node.right = self._ref(field("right"))
        elif kind is NodeKind.RETURN:
            named = node.named_children
            arena_node.expression = self._ref(named[0]) if named else None
        elif kind is NodeKind.VARIABLE_DECLARATOR:
            arena_node.name = _text(self.source, field("name"))
            arena_node.value = self._ref(field("value"))
            arena_node.declared_type = self._declared_type(node)

    def _declared_type(self, declarator: TSNode) -> StaticType:
        declaration = declarator.parent
        if declaration is None:
            return UNRESOLVED
        written = _text(self.source, declaration.child_by_field_name("type"))
        if declarator.child_by_field_name("dimensions") is not None:
            written += "[]"
        if written != "var":
            return self.resolver.resolve(written)
        value = declarator.child_by_field_name("value")
        if value is None:
            return UNRESOLVED
        if value.type == "object_creation_expression":
            return self.resolver.resolve(_text(self.source, value.child_by_field_name("type")))
        if value.type == "method_invocation":
            receiver = value.child_by_field_name("object")
            if receiver is not None:
                return self.resolver.resolve_factory(
                    _text(self.source, receiver),
                    _text(self.source, value.child_by_field_name("name")),
                )
        return UNRESOLVED


def build_syntax_tree(
    source: bytes,
    ts_tree: Tree,
    resolver: Optional[TypeResolver] = None,
) -> SyntaxTree:
    """
    Lower a parsed Java file into a SyntaxTree.

    If no resolver is given, one is built from the JDK table plus the types
    declared in this file.
    """
    if resolver is None:
        resolver = TypeResolver(collect_declared_types(ts_tree.root_node, source))
    tree = _Lowering(source, resolver).run(ts_tree.root_node)
    logger.debug("Lowered syntax tree: %d nodes", len(tree))
    return tree
