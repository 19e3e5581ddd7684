# Leak detection shared by the resource rules: flag declared variables and
# fields of a resource type when nothing in their enclosing scope shows they
# are released, returned, stored or handed to other code.
#
# Evidence is gathered by independent collectors, each a filter over the
# depth-first node list of the enclosing container. A variable is reported
# only when every collector comes back empty.

from __future__ import annotations

import logging
from abc import abstractmethod
from typing import TYPE_CHECKING, Callable, Optional, Sequence

from leakscan.context import get_line_col, get_source_span
from leakscan.findings.models import Finding, Location
from leakscan.rules.base import Rule
from leakscan.syntax.tree import INVOCATION_KINDS, NodeKind, SyntaxNode, SyntaxTree
from leakscan.syntax.types import StaticType, TypePredicate

if TYPE_CHECKING:
    from leakscan.config import Config
    from leakscan.context import FileContext

logger = logging.getLogger(__name__)

# Ordered (predicate, disposal method) pairs supplied by each concrete rule.
PredicateRegistry = Sequence[tuple[TypePredicate, str]]

NodeFilter = Callable[[SyntaxNode], bool]
FilterBuilder = Callable[[SyntaxNode], NodeFilter]
# (evidence kind, builder) pairs for declaration-specific collectors.
NamedBuilders = Sequence[tuple[str, FilterBuilder]]


def is_resource_type(predicates: PredicateRegistry, static_type: Optional[StaticType]) -> bool:
    """True if any registered predicate accepts static_type."""
    if static_type is None:
        return False
    return any(predicate(static_type) for predicate, _ in predicates)


def has_disposal_match(
    predicates: PredicateRegistry,
    static_type: Optional[StaticType],
    member: Optional[str],
) -> bool:
    """True if some predicate accepting static_type is paired with member."""
    if static_type is None or member is None:
        return False
    return any(method == member and predicate(static_type) for predicate, method in predicates)


def disposal_methods(predicates: PredicateRegistry, static_type: StaticType) -> list[str]:
    """Disposal method names that apply to static_type, in registry order, deduplicated."""
    methods: list[str] = []
    for predicate, method in predicates:
        if method not in methods and predicate(static_type):
            methods.append(method)
    return methods


def _is_identifier(tree: SyntaxTree, index: Optional[int], name: Optional[str]) -> bool:
    if index is None:
        return False
    node = tree.node(index)
    return node.kind is NodeKind.IDENTIFIER and node.name == name


def _refers_to(tree: SyntaxTree, index: Optional[int], name: Optional[str]) -> bool:
    """True for `name` or `this.name`."""
    if index is None:
        return False
    if _is_identifier(tree, index, name):
        return True
    node = tree.node(index)
    return (
        node.kind is NodeKind.PROPERTY_ACCESS
        and node.name == name
        and node.target is not None
        and tree.node(node.target).kind is NodeKind.THIS
    )


# Per-declaration filters, built once per variable.

def has_constructor_field_initializer(variable: SyntaxNode) -> NodeFilter:
    return lambda n: n.kind is NodeKind.CONSTRUCTOR_FIELD_INITIALIZER and n.name == variable.name


def has_field_formal_parameter(variable: SyntaxNode) -> NodeFilter:
    return lambda n: n.kind is NodeKind.FIELD_FORMAL_PARAMETER and n.name == variable.name


def has_return(tree: SyntaxTree) -> FilterBuilder:
    """`return name;` with the variable as the bare returned expression."""

    def build(variable: SyntaxNode) -> NodeFilter:
        return lambda n: n.kind is NodeKind.RETURN and _is_identifier(tree, n.expression, variable.name)

    return build


# Collectors shared by fields and locals.

def find_variable_assignments(
    tree: SyntaxTree,
    nodes: Sequence[SyntaxNode],
    variable: SyntaxNode,
) -> list[SyntaxNode]:
    """
    Assignments that may hand the value off: the declaration initialized from
    another variable, or `name = other` and `x.name = other`.
    """
    if variable.value is not None and tree.node(variable.value).kind is NodeKind.IDENTIFIER:
        return [variable]

    def assigns_to_variable(n: SyntaxNode) -> bool:
        if n.left is None:
            return False
        left = tree.node(n.left)
        if left.kind is NodeKind.IDENTIFIER:
            return left.name == variable.name
        return left.kind is NodeKind.PROPERTY_ACCESS and left.name == variable.name

    return [
        n
        for n in nodes
        if n.kind is NodeKind.ASSIGNMENT
        and n.right is not None
        and tree.node(n.right).kind is NodeKind.IDENTIFIER
        and assigns_to_variable(n)
    ]


def find_nodes_invoking_method_on_variable(
    tree: SyntaxTree,
    nodes: Sequence[SyntaxNode],
    variable: SyntaxNode,
    predicates: PredicateRegistry,
) -> list[SyntaxNode]:
    """Calls of a disposal method on the variable, or inside its own declarator."""
    return [
        n
        for n in nodes
        if n.kind is NodeKind.METHOD_INVOCATION
        and has_disposal_match(predicates, variable.declared_type, n.name)
        and (_refers_to(tree, n.target, variable.name) or tree.has_ancestor(n.index, variable.index))
    ]


def find_method_callback_nodes(
    tree: SyntaxTree,
    nodes: Sequence[SyntaxNode],
    variable: SyntaxNode,
    predicates: PredicateRegistry,
) -> list[SyntaxNode]:
    """Uncalled references to the disposal method, e.g. `onDone(r::close)`."""
    return [
        n
        for n in nodes
        if n.kind in (NodeKind.MEMBER_REFERENCE, NodeKind.PROPERTY_ACCESS)
        and _refers_to(tree, n.target, variable.name)
        and has_disposal_match(predicates, variable.declared_type, n.name)
    ]


def find_invocations_with_variable_as_argument(
    tree: SyntaxTree,
    nodes: Sequence[SyntaxNode],
    variable: SyntaxNode,
) -> list[SyntaxNode]:
    """Any call or `new` that receives the variable as a bare argument."""
    return [
        n
        for n in nodes
        if n.kind in INVOCATION_KINDS
        and any(_is_identifier(tree, arg, variable.name) for arg in n.arguments)
    ]


def find_container(tree: SyntaxTree, declaration: SyntaxNode) -> Optional[SyntaxNode]:
    """Nearest class body for a field declaration, nearest function body for a local one."""
    if declaration.kind is NodeKind.FIELD_DECLARATION:
        wanted = NodeKind.CLASS_BODY
    else:
        wanted = NodeKind.FUNCTION_BODY
    return tree.find_ancestor(declaration.index, lambda n: n.kind is wanted)


class LeakAnalysis:
    """
    State for one rule over one file: the tree, the rule's predicates, and the
    flattened node list of each container seen so far.

    Not shared between files or runs.
    """

    def __init__(
        self,
        tree: SyntaxTree,
        predicates: PredicateRegistry,
        argument_escape: bool = True,
    ) -> None:
        self.tree = tree
        self.predicates = predicates
        self.argument_escape = argument_escape
        self.reported: list[SyntaxNode] = []
        self._flattened: dict[int, list[SyntaxNode]] = {}

    def container_nodes(self, container: SyntaxNode) -> list[SyntaxNode]:
        if container.index not in self._flattened:
            self._flattened[container.index] = self.tree.traverse_dfs(container.index)
        return self._flattened[container.index]

    def _declarators(self, declaration: SyntaxNode) -> list[SyntaxNode]:
        return [
            self.tree.node(i)
            for i in declaration.children
            if self.tree.node(i).kind is NodeKind.VARIABLE_DECLARATOR
        ]

    def filters_for(self, declaration: SyntaxNode) -> NamedBuilders:
        """Declaration-specific collectors: constructor ownership for fields, `return` for locals."""
        if declaration.kind is NodeKind.FIELD_DECLARATION:
            return (
                ("constructor_field_initializer", has_constructor_field_initializer),
                ("field_formal_parameter", has_field_formal_parameter),
            )
        return (("return", has_return(self.tree)),)

    def visit_field_declaration(self, node: SyntaxNode) -> None:
        self._visit_declaration(node)

    def visit_local_variable_declaration(self, node: SyntaxNode) -> None:
        self._visit_declaration(node)

    def _visit_declaration(self, node: SyntaxNode) -> None:
        container = find_container(self.tree, node)
        if container is None:
            line, col = get_line_col(node)
            logger.warning(
                "No enclosing %s for declaration at line %d, column %d; skipping",
                "class body" if node.kind is NodeKind.FIELD_DECLARATION else "function body",
                line,
                col,
            )
            return
        builders = self.filters_for(node)
        for variable in self._declarators(node):
            self.check_variable(variable, container, builders)

    def collect_evidence(
        self,
        variable: SyntaxNode,
        container: SyntaxNode,
        builders: NamedBuilders = (),
    ) -> dict[str, list[SyntaxNode]]:
        """Run every collector for variable; keys name the kind of evidence."""
        nodes = self.container_nodes(container)
        evidence: dict[str, list[SyntaxNode]] = {}
        for kind, build in builders:
            matches = build(variable)
            evidence[kind] = [n for n in nodes if matches(n)]
        evidence["assignment"] = find_variable_assignments(self.tree, nodes, variable)
        evidence["disposal_call"] = find_nodes_invoking_method_on_variable(
            self.tree, nodes, variable, self.predicates
        )
        evidence["disposal_callback"] = find_method_callback_nodes(
            self.tree, nodes, variable, self.predicates
        )
        # A callee may well dispose of what it is given, and its body is not
        # visible here, so passing the variable anywhere counts as evidence.
        if self.argument_escape:
            evidence["argument"] = find_invocations_with_variable_as_argument(
                self.tree, nodes, variable
            )
        return evidence

    def check_variable(
        self,
        variable: SyntaxNode,
        container: SyntaxNode,
        builders: NamedBuilders = (),
    ) -> bool:
        """Report variable if its type is a resource and no evidence exists. Returns True if reported."""
        if not is_resource_type(self.predicates, variable.declared_type):
            return False
        evidence = self.collect_evidence(variable, container, builders)
        if any(evidence.values()):
            logger.debug(
                "'%s' accounted for by %s",
                variable.name,
                ", ".join(kind for kind, found in evidence.items() if found),
            )
            return False
        self.reported.append(variable)
        return True


class LeakDetector(Rule):
    """
    Base for rules that flag resource variables never released in scope.

    Subclasses supply `predicates`: ordered (type predicate, disposal method)
    pairs. A variable is in scope when any predicate accepts its declared
    type; a call counts as disposal when its method name is paired with a
    predicate that accepts that type.
    """

    @property
    @abstractmethod
    def predicates(self) -> PredicateRegistry:
        ...

    def message(self, variable: SyntaxNode) -> str:
        static_type = variable.declared_type
        methods = " or ".join(f"{m}()" for m in disposal_methods(self.predicates, static_type))
        return (
            f"'{variable.name}' ({static_type.written}) is never released in its scope; "
            f"call {methods} or pass it to code that does."
        )

    def analyze(self, tree: SyntaxTree, argument_escape: bool = True) -> list[SyntaxNode]:
        """Return the declarators this rule flags in tree, in document order."""
        analysis = LeakAnalysis(tree, self.predicates, argument_escape=argument_escape)
        for node in tree.traverse_dfs(tree.root.index):
            if node.kind is NodeKind.FIELD_DECLARATION:
                analysis.visit_field_declaration(node)
            elif node.kind is NodeKind.LOCAL_VARIABLE_DECLARATION:
                analysis.visit_local_variable_declaration(node)
        return analysis.reported

    def run(self, context: FileContext, config: Optional[Config]) -> list[Finding]:
        argument_escape = config.argument_escape if config is not None else True
        severity = self.severity_for(config)
        findings: list[Finding] = []
        for variable in self.analyze(context.syntax_tree, argument_escape=argument_escape):
            line, col = get_line_col(variable)
            end_line, end_col = variable.end_point
            findings.append(
                Finding(
                    rule_id=self.id,
                    message=self.message(variable),
                    location=Location(
                        path=context.path,
                        line=line,
                        column=col,
                        end_line=end_line + 1,
                        end_column=end_col + 1,
                        snippet=get_source_span(context, variable),
                    ),
                    severity=severity,
                    variable=variable.name,
                )
            )
        logger.info("Rule %s: %d finding(s) in %s", self.id, len(findings), context.path)
        return findings
