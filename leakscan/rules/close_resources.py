# Unclosed resources: AutoCloseable locals and fields that are never closed.

from __future__ import annotations

from leakscan.rules.leak_detector import LeakDetector, PredicateRegistry
from leakscan.syntax.types import is_subtype_of

_PREDICATES: PredicateRegistry = (
    (is_subtype_of("AutoCloseable"), "close"),
)


class CloseResourcesRule(LeakDetector):
    """
    Flag streams, readers, sockets, JDBC handles and other AutoCloseable
    values with no close(), no hand-off and no try-with-resources in scope.
    """

    id = "close-resources"
    name = "Unclosed resource"

    @property
    def predicates(self) -> PredicateRegistry:
        return _PREDICATES
