# Pydantic models for reported leaks: Finding and its source Location.

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field


class Location(BaseModel):
    """Where in the source a finding was reported (file, line, column)."""

    path: Path
    line: int = Field(..., ge=1, description="1-based line number")
    column: int = Field(..., ge=1, description="1-based column number")
    end_line: Optional[int] = Field(None, ge=1)
    end_column: Optional[int] = Field(None, ge=1)
    snippet: Optional[str] = None

    model_config = {"arbitrary_types_allowed": True}


class Finding(BaseModel):
    """A declared resource with no evidence of being released (e.g. an unclosed reader)."""

    rule_id: str
    message: str
    location: Location
    severity: str = Field(default="warning", description="e.g. error, warning, info")
    variable: Optional[str] = Field(None, description="Name of the flagged variable or field")

    model_config = {"arbitrary_types_allowed": True}

    def format_line(self) -> str:
        """Render as `path:line:col: SEVERITY [rule] message` for grep-style output."""
        loc = self.location
        return f"{loc.path}:{loc.line}:{loc.column}: {self.severity.upper()} [{self.rule_id}] {self.message}"
