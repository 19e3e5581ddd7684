# Rule interface (abstract base class): the contract every rule implements.
# The CLI calls run() once per file with that file's context and the
# active configuration.

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from leakscan.config import Config
    from leakscan.context import FileContext
    from leakscan.findings.models import Finding


class Rule(ABC):
    """
    Abstract base class for all static analysis rules.

    Subclasses must define:
    - id: str — unique rule identifier (e.g. "close-resources")
    - name: str — human-readable rule name (e.g. "Unclosed resource")
    - run(context, config) -> list[Finding] — analyze one file and return findings
    """

    id: str
    name: str
    severity: str = "warning"

    def severity_for(self, config: Optional[Config]) -> str:
        """Severity from the config's per-rule overrides, else the rule default."""
        if config is None:
            return self.severity
        return config.severity.get(self.id, self.severity)

    @abstractmethod
    def run(self, context: FileContext, config: Optional[Config]) -> list[Finding]:
        """
        Analyze one file and return any findings.

        Args:
            context: Per-file state (path, source bytes, syntax tree).
            config: Scanner config, or None for defaults.

        Returns:
            List of Finding objects; empty if nothing was found.
        """
        ...
