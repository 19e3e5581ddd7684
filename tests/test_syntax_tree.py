"""Tests for the syntax arena and the tree-sitter lowering."""

from leakscan.parser import parse_bytes
from leakscan.syntax.builder import build_syntax_tree, collect_declared_types
from leakscan.syntax.tree import NodeKind, SyntaxNode, SyntaxTree


def _lower(source: bytes) -> SyntaxTree:
    return build_syntax_tree(source, parse_bytes(source))


def _add(tree: SyntaxTree, kind: NodeKind, parent=None) -> SyntaxNode:
    return tree.add(
        SyntaxNode(
            index=-1,
            kind=kind,
            grammar_type=kind.value,
            start_byte=0,
            end_byte=0,
            start_point=(0, 0),
            end_point=(0, 0),
            parent=parent,
        )
    )


def _first(tree: SyntaxTree, kind: NodeKind, name=None) -> SyntaxNode:
    return next(n for n in tree.nodes if n.kind is kind and (name is None or n.name == name))


class TestArena:
    def _sample(self) -> SyntaxTree:
        #        0
        #      /   \
        #     1     4
        #    / \
        #   2   3
        tree = SyntaxTree(b"")
        root = _add(tree, NodeKind.COMPILATION_UNIT)
        a = _add(tree, NodeKind.CLASS_BODY, root.index)
        _add(tree, NodeKind.FIELD_DECLARATION, a.index)
        _add(tree, NodeKind.FUNCTION_BODY, a.index)
        _add(tree, NodeKind.OTHER, root.index)
        return tree

    def test_add_links_children_in_order(self):
        tree = self._sample()
        assert len(tree) == 5
        assert tree.root.children == [1, 4]
        assert tree.node(1).children == [2, 3]

    def test_traverse_dfs_is_preorder_without_self(self):
        tree = self._sample()
        assert [n.index for n in tree.traverse_dfs(0)] == [1, 2, 3, 4]
        assert [n.index for n in tree.traverse_dfs(1)] == [2, 3]
        assert tree.traverse_dfs(2) == []

    def test_ancestors_nearest_first(self):
        tree = self._sample()
        assert [n.index for n in tree.ancestors(3)] == [1, 0]
        assert list(tree.ancestors(0)) == []

    def test_find_ancestor(self):
        tree = self._sample()
        found = tree.find_ancestor(3, lambda n: n.kind is NodeKind.CLASS_BODY)
        assert found is not None and found.index == 1
        assert tree.find_ancestor(3, lambda n: n.kind is NodeKind.RETURN) is None

    def test_has_ancestor_is_inclusive(self):
        tree = self._sample()
        assert tree.has_ancestor(3, 3)
        assert tree.has_ancestor(3, 0)
        assert not tree.has_ancestor(3, 4)


class TestLowering:
    def test_traversal_is_deterministic_and_complete(self):
        source = b"class A { int x; void f() { g(x); } }"
        first = [(n.kind, n.start_byte) for n in _lower(source).traverse_dfs(0)]
        second = [(n.kind, n.start_byte) for n in _lower(source).traverse_dfs(0)]
        assert first == second
        assert len(first) == len(_lower(source)) - 1

    def test_containers(self):
        tree = _lower(b"class A { int x; A() { } void f() { Runnable r = () -> { }; } static { } }")
        kinds = [n.grammar_type for n in tree.nodes if n.kind is NodeKind.FUNCTION_BODY]
        assert kinds.count("constructor_body") == 1
        assert kinds.count("block") == 3
        assert len([n for n in tree.nodes if n.kind is NodeKind.CLASS_BODY]) == 1

    def test_declarators_carry_name_value_and_type(self):
        tree = _lower(b"class A { void f() { java.io.Reader a = other, b; } }")
        a = _first(tree, NodeKind.VARIABLE_DECLARATOR, "a")
        b = _first(tree, NodeKind.VARIABLE_DECLARATOR, "b")
        assert tree.node(a.value).kind is NodeKind.IDENTIFIER
        assert tree.node(a.value).name == "other"
        assert b.value is None
        assert a.declared_type.name == "Reader"
        assert a.declared_type.is_subtype_of("AutoCloseable")
        declaration = tree.node(a.parent)
        assert declaration.kind is NodeKind.LOCAL_VARIABLE_DECLARATION
        assert b.parent == declaration.index

    def test_var_inferred_from_new_and_factory(self):
        tree = _lower(
            b"class A { void f() {"
            b" var s = new java.net.Socket();"
            b" var r = Files.newBufferedReader(p);"
            b" var u = make(); } }"
        )
        assert _first(tree, NodeKind.VARIABLE_DECLARATOR, "s").declared_type.name == "Socket"
        assert _first(tree, NodeKind.VARIABLE_DECLARATOR, "r").declared_type.name == "BufferedReader"
        assert not _first(tree, NodeKind.VARIABLE_DECLARATOR, "u").declared_type.is_resolved

    def test_invocations(self):
        tree = _lower(b"class A { void f() { r.close(); use(r, 1); new Box(r); } }")
        close = _first(tree, NodeKind.METHOD_INVOCATION, "close")
        assert tree.node(close.target).name == "r"
        assert close.arguments == ()
        use = _first(tree, NodeKind.METHOD_INVOCATION, "use")
        assert use.target is None
        assert [tree.node(i).name for i in use.arguments] == ["r", None]
        box = _first(tree, NodeKind.INSTANCE_CREATION)
        assert box.name == "Box"
        assert [tree.node(i).name for i in box.arguments] == ["r"]

    def test_member_reference_and_property_access(self):
        tree = _lower(b"class A { void f() { Runnable h = r::close; int n = this.count; } }")
        ref = _first(tree, NodeKind.MEMBER_REFERENCE)
        assert ref.name == "close"
        assert tree.node(ref.target).name == "r"
        access = _first(tree, NodeKind.PROPERTY_ACCESS)
        assert access.name == "count"
        assert tree.node(access.target).kind is NodeKind.THIS

    def test_assignment_and_return(self):
        tree = _lower(b"class A { Object f() { a = b; return a; } }")
        assignment = _first(tree, NodeKind.ASSIGNMENT)
        assert tree.node(assignment.left).name == "a"
        assert tree.node(assignment.right).name == "b"
        ret = _first(tree, NodeKind.RETURN)
        assert tree.node(ret.expression).name == "a"

    def test_constructor_field_initializers_and_field_formals(self):
        tree = _lower(
            b"class A {"
            b"  Reader in; Reader out; Reader err;"
            b"  A(Reader in, Reader other) { this.in = in; this.out = other; }"
            b"  void set(Reader err) { this.err = err; }"
            b"}"
        )
        initialized = {n.name for n in tree.nodes if n.kind is NodeKind.CONSTRUCTOR_FIELD_INITIALIZER}
        assert initialized == {"in", "out"}
        formals = {n.name for n in tree.nodes if n.kind is NodeKind.FIELD_FORMAL_PARAMETER}
        assert formals == {"in"}
        params = {n.name for n in tree.nodes if n.kind is NodeKind.PARAMETER}
        assert params == {"other", "err"}
        wrapper = _first(tree, NodeKind.CONSTRUCTOR_FIELD_INITIALIZER, "in")
        assert tree.node(wrapper.children[0]).kind is NodeKind.ASSIGNMENT

    def test_try_with_existing_resource_is_a_close_call(self):
        tree = _lower(b"class A { void f(Reader r) { try (r) { } } }")
        close = _first(tree, NodeKind.METHOD_INVOCATION, "close")
        assert close.grammar_type == "resource"
        assert tree.node(close.target).name == "r"

    def test_collect_declared_types(self):
        source = (
            b"class Pool extends Base implements java.io.Closeable, Comparable<Pool> { }"
            b" interface Handle extends AutoCloseable { }"
        )
        declared = collect_declared_types(parse_bytes(source).root_node, source)
        assert declared["Pool"] == ["Base", "Closeable", "Comparable"]
        assert declared["Handle"] == ["AutoCloseable"]

    def test_declared_types_feed_resolution(self):
        tree = _lower(b"class Pool implements java.io.Closeable { } class A { Pool p; }")
        p = _first(tree, NodeKind.VARIABLE_DECLARATOR, "p")
        assert p.declared_type.is_subtype_of("AutoCloseable")
