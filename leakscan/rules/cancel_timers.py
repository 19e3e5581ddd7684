# Uncancelled timers and subscriptions: java.util.Timer threads and
# Flow.Subscription demand keep running until cancel() is called.

from __future__ import annotations

from leakscan.rules.leak_detector import LeakDetector, PredicateRegistry
from leakscan.syntax.types import is_subtype_of, is_type

_PREDICATES: PredicateRegistry = (
    (is_subtype_of("Timer"), "cancel"),
    (is_type("Subscription"), "cancel"),
)


class CancelTimersRule(LeakDetector):
    """Flag Timer and Flow.Subscription variables that are never cancelled."""

    id = "cancel-timers"
    name = "Uncancelled timer or subscription"

    @property
    def predicates(self) -> PredicateRegistry:
        return _PREDICATES
