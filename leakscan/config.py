from __future__ import annotations

"""
Scanner configuration: which rules run, how they are instantiated, and the
knobs the leak rules read.

There is no config file; the CLI builds a Config from its flags and this
module is the single place new rules get registered.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from leakscan.rules.base import Rule
from leakscan.rules.cancel_timers import CancelTimersRule
from leakscan.rules.close_resources import CloseResourcesRule


@dataclass
class Config:
    """
    Scanner configuration.

    argument_escape: treat passing a variable to any call as evidence that
        it is released there. On by default; turning it off (strict mode)
        reports more leaks along with more false positives.
    severity: per-rule severity overrides, keyed by rule id.
    """

    rules: Sequence[Rule] = field(default_factory=list)
    argument_escape: bool = True
    severity: Dict[str, str] = field(default_factory=dict)


def all_rules() -> List[Rule]:
    """Fresh instances of every implemented rule."""
    return [
        CloseResourcesRule(),
        CancelTimersRule(),
    ]


def get_default_config() -> Config:
    """Return the default configuration with all currently implemented rules."""
    return Config(rules=all_rules())


def get_enabled_rules(
    config: Config | None = None,
    only: Optional[Iterable[str]] = None,
) -> Sequence[Rule]:
    """
    Return the enabled rules from the given config (or default config),
    optionally restricted to the rule ids in `only`.

    Raises:
        ValueError: if `only` names a rule that is not registered.
    """
    if config is None:
        config = get_default_config()
    if only is None:
        return config.rules
    wanted = list(only)
    known = {rule.id for rule in config.rules}
    unknown = [rule_id for rule_id in wanted if rule_id not in known]
    if unknown:
        raise ValueError(f"Unknown rule id(s): {', '.join(unknown)}")
    return [rule for rule in config.rules if rule.id in wanted]
