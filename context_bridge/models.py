"""
Record types shared by the scanner, analyzer, memory and validator.

The project context itself stays a plain mapping (the parsed YAML/JSON
document). Everything derived from it or from the source tree is a frozen
dataclass with a ``to_dict`` for JSON output.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


@dataclass(frozen=True)
class SecurityPattern:
    """A named regex that flags a line, declared under ``security.patterns``."""

    name: str
    pattern: str
    severity: str
    message: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SecurityPattern":
        return cls(
            name=str(data.get("name", "")),
            pattern=str(data.get("pattern", "")),
            severity=str(data.get("severity", "warning")),
            message=str(data.get("message", "")),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Issue:
    """A security finding. ``line`` is 1-based, None for file-level findings."""

    file: str
    rule: str
    severity: str
    message: str
    suggestion: str
    line: int | None = None

    def to_dict(self) -> dict[str, Any]:
        result = asdict(self)
        if self.line is None:
            del result["line"]
        return result


@dataclass(frozen=True)
class ContinuityIssue:
    """A mismatch between the declared context and what the code does."""

    type: str
    frontend: str
    backend: str
    message: str
    suggestion: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class FrontendCall:
    """An HTTP call found in frontend code."""

    method: str
    path: str
    file: str
    line: int


@dataclass(frozen=True)
class BackendRoute:
    """A route registration found in backend code."""

    method: str
    path: str
    file: str
    line: int
    description: str | None = None


@dataclass(frozen=True)
class ComponentDefinition:
    name: str
    file: str
    line: int


@dataclass(frozen=True)
class ComponentUsage:
    name: str
    file: str
    line: int


@dataclass(frozen=True)
class Navigation:
    """A programmatic navigation (``navigate('/x')``, ``router.push('/x')``)."""

    route: str
    file: str
    line: int


@dataclass(frozen=True)
class AuthCall:
    """A line that performs an authentication request."""

    endpoint: str
    file: str
    line: int


@dataclass(frozen=True)
class ModelDefinition:
    """A database model found in backend code."""

    name: str
    file: str
    line: int
    fields: tuple[tuple[str, str], ...] = ()  # (name, type)
    table: str | None = None


@dataclass
class SourceFacts:
    """Everything one extractor found in one file."""

    calls: list[FrontendCall] = field(default_factory=list)
    routes: list[BackendRoute] = field(default_factory=list)
    declared_routes: list[str] = field(default_factory=list)
    components: list[ComponentDefinition] = field(default_factory=list)
    usages: list[ComponentUsage] = field(default_factory=list)
    navigations: list[Navigation] = field(default_factory=list)
    auth_calls: list[AuthCall] = field(default_factory=list)
    models: list[ModelDefinition] = field(default_factory=list)


@dataclass(frozen=True)
class Endpoint:
    """An API endpoint as declared under ``api.endpoints``."""

    path: str
    method: str
    description: str | None = None
    parameters: tuple[dict[str, Any], ...] = ()
    authentication: bool | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Endpoint":
        return cls(
            path=str(data.get("path", "")),
            method=str(data.get("method", "GET")).upper(),
            description=data.get("description"),
            parameters=tuple(data.get("parameters") or ()),
            authentication=data.get("authentication"),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"path": self.path, "method": self.method}
        if self.description is not None:
            result["description"] = self.description
        if self.parameters:
            result["parameters"] = [dict(p) for p in self.parameters]
        if self.authentication is not None:
            result["authentication"] = self.authentication
        return result


@dataclass(frozen=True)
class Interaction:
    """One logged interaction, stored newest-first in ``contextMemory``."""

    timestamp: str
    action: str
    context: str
    result: str
    metadata: dict[str, Any] | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Interaction":
        return cls(
            timestamp=str(data.get("timestamp", "")),
            action=str(data.get("action", "")),
            context=str(data.get("context", "")),
            result=str(data.get("result", "")),
            metadata=data.get("metadata"),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "timestamp": self.timestamp,
            "action": self.action,
            "context": self.context,
            "result": self.result,
        }
        if self.metadata is not None:
            result["metadata"] = dict(self.metadata)
        return result


@dataclass(frozen=True)
class ContextPatch:
    """
    Sections of a project context discovered from code.

    A section left as None was not discovered and is not touched by
    :func:`context_bridge.continuity.apply_patch`.
    """

    api: dict[str, Any] | None = None
    frontend: dict[str, Any] | None = None
    database: dict[str, Any] | None = None

    def sections(self) -> dict[str, dict[str, Any]]:
        """Non-empty sections keyed by their context key."""
        return {
            key: value
            for key, value in (
                ("api", self.api),
                ("frontend", self.frontend),
                ("database", self.database),
            )
            if value is not None
        }

    def is_empty(self) -> bool:
        return not self.sections()

    def to_dict(self) -> dict[str, Any]:
        return self.sections()


@dataclass(frozen=True)
class ValidationIssue:
    path: str
    message: str
    severity: str
    suggestion: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result = asdict(self)
        if self.suggestion is None:
            del result["suggestion"]
        return result


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: tuple[ValidationIssue, ...] = ()
    warnings: tuple[ValidationIssue, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
        }
