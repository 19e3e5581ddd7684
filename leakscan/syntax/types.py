# Static type resolution for declared variables: just enough of the Java type
# hierarchy to answer "is this declared type a resource?".

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

logger = logging.getLogger(__name__)

# Direct supertypes of well-known JDK types, keyed by simple name.
KNOWN_SUPERTYPES: dict[str, tuple[str, ...]] = {
    "AutoCloseable": (),
    "Closeable": ("AutoCloseable",),
    "Flushable": (),
    "Readable": (),
    "Appendable": (),
    # java.io byte streams
    "InputStream": ("Closeable",),
    "FilterInputStream": ("InputStream",),
    "FileInputStream": ("InputStream",),
    "BufferedInputStream": ("FilterInputStream",),
    "DataInputStream": ("FilterInputStream",),
    "ObjectInputStream": ("InputStream",),
    "OutputStream": ("Closeable", "Flushable"),
    "FilterOutputStream": ("OutputStream",),
    "FileOutputStream": ("OutputStream",),
    "BufferedOutputStream": ("FilterOutputStream",),
    "DataOutputStream": ("FilterOutputStream",),
    "PrintStream": ("FilterOutputStream", "Appendable"),
    "ObjectOutputStream": ("OutputStream",),
    "RandomAccessFile": ("Closeable",),
    # java.io character streams
    "Reader": ("Readable", "Closeable"),
    "InputStreamReader": ("Reader",),
    "FileReader": ("InputStreamReader",),
    "BufferedReader": ("Reader",),
    "LineNumberReader": ("BufferedReader",),
    "Writer": ("Appendable", "Closeable", "Flushable"),
    "OutputStreamWriter": ("Writer",),
    "FileWriter": ("OutputStreamWriter",),
    "BufferedWriter": ("Writer",),
    "PrintWriter": ("Writer",),
    # java.util
    "Scanner": ("Closeable",),
    "Formatter": ("Closeable", "Flushable"),
    "Timer": (),
    "Subscription": (),
    # java.util.zip / java.util.jar
    "ZipFile": ("Closeable",),
    "JarFile": ("ZipFile",),
    "ZipInputStream": ("FilterInputStream",),
    "ZipOutputStream": ("FilterOutputStream",),
    "GZIPInputStream": ("FilterInputStream",),
    "GZIPOutputStream": ("FilterOutputStream",),
    # java.net / java.nio
    "Socket": ("Closeable",),
    "ServerSocket": ("Closeable",),
    "DatagramSocket": ("Closeable",),
    "Channel": ("Closeable",),
    "FileChannel": ("Channel",),
    "SocketChannel": ("Channel",),
    "ServerSocketChannel": ("Channel",),
    "DirectoryStream": ("Closeable",),
    "WatchService": ("Closeable",),
    "Selector": ("Closeable",),
    # java.sql
    "Connection": ("AutoCloseable",),
    "Statement": ("AutoCloseable",),
    "PreparedStatement": ("Statement",),
    "CallableStatement": ("PreparedStatement",),
    "ResultSet": ("AutoCloseable",),
}

# Return types of common factory methods, used to infer `var` declarations.
KNOWN_FACTORIES: dict[tuple[str, str], str] = {
    ("Files", "newBufferedReader"): "BufferedReader",
    ("Files", "newBufferedWriter"): "BufferedWriter",
    ("Files", "newInputStream"): "InputStream",
    ("Files", "newOutputStream"): "OutputStream",
    ("Files", "newDirectoryStream"): "DirectoryStream",
    ("FileChannel", "open"): "FileChannel",
    ("SocketChannel", "open"): "SocketChannel",
    ("ServerSocketChannel", "open"): "ServerSocketChannel",
    ("Selector", "open"): "Selector",
    ("DriverManager", "getConnection"): "Connection",
}

_GENERIC_ARGS = re.compile(r"<.*>", re.DOTALL)


def simple_name(written: str) -> str:
    """
    Reduce a written type to its simple name.

    Examples:
        >>> simple_name("java.io.FileInputStream")
        'FileInputStream'
        >>> simple_name("Map<String, List<Integer>>")
        'Map'
        >>> simple_name("Flow.Subscription")
        'Subscription'
    """
    text = _GENERIC_ARGS.sub("", written).strip()
    if text.split():
        # Drop leading annotations such as `@NonNull Reader`.
        text = text.split()[-1]
    return text.rsplit(".", 1)[-1]


@dataclass(frozen=True)
class StaticType:
    """A resolved declared type: its simple name plus every known supertype."""

    name: str
    written: str = ""
    supertypes: frozenset[str] = field(default_factory=frozenset)
    is_resolved: bool = True

    def is_subtype_of(self, name: str) -> bool:
        return self.is_resolved and (self.name == name or name in self.supertypes)


UNRESOLVED = StaticType(name="", written="var", is_resolved=False)

TypePredicate = Callable[[StaticType], bool]


def is_type(name: str) -> TypePredicate:
    """Predicate matching exactly the type with this simple name."""

    def predicate(static_type: StaticType) -> bool:
        return static_type.is_resolved and static_type.name == name

    predicate.__name__ = f"is_type({name})"
    return predicate


def is_subtype_of(name: str) -> TypePredicate:
    """Predicate matching the named type and everything that extends or implements it."""

    def predicate(static_type: StaticType) -> bool:
        return static_type.is_subtype_of(name)

    predicate.__name__ = f"is_subtype_of({name})"
    return predicate


class TypeResolver:
    """
    Resolve written Java types against the JDK table plus the types declared
    in the file being analyzed.
    """

    def __init__(self, declared: Optional[dict[str, Iterable[str]]] = None) -> None:
        self._direct: dict[str, tuple[str, ...]] = dict(KNOWN_SUPERTYPES)
        for name, supers in (declared or {}).items():
            self.declare(name, supers)

    def declare(self, name: str, supertypes: Iterable[str]) -> None:
        """Register a type declared in source; shadows a JDK type of the same name."""
        self._direct[name] = tuple(simple_name(s) for s in supertypes)
        logger.debug("Declared type %s: supertypes=%s", name, self._direct[name])

    def supertypes_of(self, name: str) -> frozenset[str]:
        """Transitive supertypes of name (not including name itself)."""
        seen: set[str] = set()
        stack = list(self._direct.get(name, ()))
        while stack:
            current = stack.pop()
            if current in seen or current == name:
                continue
            seen.add(current)
            stack.extend(self._direct.get(current, ()))
        return frozenset(seen)

    def resolve(self, written: str) -> StaticType:
        """Resolve a written type such as `java.io.Reader` or `List<Socket>`."""
        written = written.strip()
        if not written or written == "var":
            return UNRESOLVED
        if written.endswith("]"):
            # Arrays and varargs are containers, not resources themselves.
            return StaticType(name=written, written=written)
        name = simple_name(written)
        return StaticType(name=name, written=written, supertypes=self.supertypes_of(name))

    def resolve_factory(self, receiver: str, method: str) -> StaticType:
        """Infer the type returned by a known factory call, e.g. Files.newBufferedReader."""
        returned = KNOWN_FACTORIES.get((simple_name(receiver), method))
        if returned is None:
            return UNRESOLVED
        return self.resolve(returned)
