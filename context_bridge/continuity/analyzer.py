"""
Frontend/backend continuity analysis for context_bridge.

Compares what the project context declares (API endpoints, authentication)
with what the source tree actually does (HTTP calls, component usage,
navigation), and discovers endpoints, components and models from code.
"""

from __future__ import annotations

import copy
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING
from urllib.parse import parse_qsl, urlsplit

from context_bridge.config import (
    BACKEND_EXTENSIONS,
    DEFAULT_CONFIG,
    DEFAULT_EXCLUDE,
    FRONTEND_EXTENSIONS,
    ROUTE_EXTENSIONS,
)
from context_bridge.continuity.extractors import ExtractorRegistry
from context_bridge.models import (
    AuthCall,
    BackendRoute,
    ComponentDefinition,
    ComponentUsage,
    ContextPatch,
    ContinuityIssue,
    Endpoint,
    FrontendCall,
    ModelDefinition,
    Navigation,
)
from context_bridge.utils import read_text, relative_path, should_exclude, walk_files

if TYPE_CHECKING:
    from typing import Any, Iterable, Mapping

    from context_bridge.continuity.extractors import SourceFactExtractor

logger = logging.getLogger(__name__)


AUTH_REQUIRED_MARKERS = ("user", "profile", "dashboard", "admin", "account")
FILE_ROUTE_ROOTS = ("pages", "app")
APP_ROUTER_FILES = ("page", "route")

PATH_PARAM_RES = (
    re.compile(r"^:(\w+)$"),        # /users/:id
    re.compile(r"^\$?\{(\w+)\}$"),  # /users/{id}, /users/${id}
    re.compile(r"^\[(?:\.\.\.)?(\w+)\]$"),  # /users/[id]
)


def normalize_path(path: str) -> str:
    """
    Normalize an API path for matching.

    Drops scheme and host, query string and fragment, and a trailing slash
    (except for the root path).
    """
    path = path.strip()
    try:
        parts = urlsplit(path)
    except ValueError:
        parts = None

    if parts is not None and parts.netloc:
        path = parts.path or "/"
    else:
        path = path.split("?", 1)[0].split("#", 1)[0]

    if len(path) > 1:
        path = path.rstrip("/") or "/"
    return path


def file_system_route(file: str) -> str | None:
    """
    Route implied by a file under ``pages/`` or ``app/``.

    ``pages/index.tsx`` is ``/``, ``pages/about.tsx`` is ``/about`` and
    ``app/dashboard/page.tsx`` is ``/dashboard``.
    """
    parts = list(PurePosixPath(file).parts)
    root_index = None
    for i, part in enumerate(parts[:-1]):
        if part in FILE_ROUTE_ROOTS:
            root_index = i
    if root_index is None:
        return None

    root_name = parts[root_index]
    route_parts = parts[root_index + 1:]
    route_parts[-1] = PurePosixPath(route_parts[-1]).stem
    if route_parts[-1] == "index" or (root_name == "app" and route_parts[-1] in APP_ROUTER_FILES):
        route_parts = route_parts[:-1]
    return "/" + "/".join(route_parts)


@dataclass
class ProjectFacts:
    """Facts gathered from every file, grouped by the role the file plays."""

    calls: list[FrontendCall] = field(default_factory=list)
    components: list[ComponentDefinition] = field(default_factory=list)
    usages: list[ComponentUsage] = field(default_factory=list)
    declared_routes: set[str] = field(default_factory=set)
    navigations: list[Navigation] = field(default_factory=list)
    auth_calls: list[AuthCall] = field(default_factory=list)
    routes: list[BackendRoute] = field(default_factory=list)
    models: list[ModelDefinition] = field(default_factory=list)


class ContinuityAnalyzer:
    """
    Check a source tree against the project context.

    The analyzer never modifies the context; ``update_context_from_code``
    returns a ``ContextPatch`` for the caller to apply.
    """

    def __init__(
        self,
        context: dict[str, Any] | None = None,
        config: dict[str, Any] | None = None,
        extractors: Mapping[str, SourceFactExtractor] | None = None,
    ) -> None:
        """
        Initialize the analyzer.

        Args:
            context: Project context.
            config: Configuration dictionary (see ``DEFAULT_CONFIG``).
            extractors: Extension to extractor overrides, consulted before
                the ``ExtractorRegistry``.
        """
        self.context = context or {}
        self.config = config or DEFAULT_CONFIG

        continuity_config = self.config.get("continuity", {})
        self.ignore_components = set(
            continuity_config.get("ignore_components")
            or DEFAULT_CONFIG["continuity"]["ignore_components"]
        )
        self.backend_exclude = list(
            continuity_config.get("backend_exclude")
            or DEFAULT_CONFIG["continuity"]["backend_exclude"]
        )
        self.exclude = DEFAULT_EXCLUDE + list(self.config.get("scan", {}).get("exclude") or [])
        self.extractors = {k.lower(): v for k, v in (extractors or {}).items()}

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def _get_extractor(self, path: Path) -> SourceFactExtractor | None:
        override = self.extractors.get(path.suffix.lower())
        if override is not None:
            return override
        return ExtractorRegistry.get_extractor(path)

    def collect_facts(self, root: Path) -> ProjectFacts:
        """
        Run the extractors over every file under root.

        Args:
            root: Project root directory.

        Returns:
            Facts grouped by file role (frontend, routing, backend).
        """
        root = Path(root)
        facts = ProjectFacts()

        for filepath in walk_files(root, self.exclude):
            suffix = filepath.suffix.lower()
            is_frontend = suffix in FRONTEND_EXTENSIONS
            is_routing = suffix in ROUTE_EXTENSIONS
            is_backend = suffix in BACKEND_EXTENSIONS and not should_exclude(
                filepath.relative_to(root), self.backend_exclude
            )
            if not (is_frontend or is_routing or is_backend):
                continue

            extractor = self._get_extractor(filepath)
            if extractor is None:
                continue
            source = read_text(filepath)
            if source is None:
                continue

            file = relative_path(filepath, root)
            found = extractor.extract(source, file)

            if is_frontend:
                facts.calls.extend(found.calls)
                facts.components.extend(found.components)
                facts.usages.extend(found.usages)
            if is_routing:
                facts.declared_routes.update(found.declared_routes)
                route = file_system_route(file)
                if route:
                    facts.declared_routes.add(route)
                facts.navigations.extend(found.navigations)
                facts.auth_calls.extend(found.auth_calls)
            if is_backend:
                facts.routes.extend(found.routes)
                facts.models.extend(found.models)

        logger.debug(
            "Collected %d call(s), %d route(s), %d component(s), %d model(s) under %s",
            len(facts.calls), len(facts.routes), len(facts.components), len(facts.models), root,
        )
        return facts

    def discover_frontend_calls(self, root: Path) -> list[FrontendCall]:
        """HTTP calls made by frontend code under root."""
        return self.collect_facts(root).calls

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def declared_endpoints(self) -> list[Endpoint]:
        api = self.context.get("api") or {}
        return [
            Endpoint.from_dict(e)
            for e in api.get("endpoints") or []
            if isinstance(e, dict)
        ]

    def check_continuity(self, root: Path) -> list[ContinuityIssue]:
        """
        Run every continuity check against the source tree.

        Args:
            root: Project root directory.

        Returns:
            API, component, route and authentication issues, in that order.
        """
        facts = self.collect_facts(root)
        issues: list[ContinuityIssue] = []
        issues.extend(self.check_api(facts))
        issues.extend(self.check_components(facts))
        issues.extend(self.check_routes(facts))
        issues.extend(self.check_authentication(facts))
        return issues

    def check_api(self, facts: ProjectFacts) -> list[ContinuityIssue]:
        """Frontend calls without a declared endpoint, and declared endpoints nobody calls."""
        endpoints = self.declared_endpoints()
        declared = {(e.method, normalize_path(e.path)) for e in endpoints}
        called: set[tuple[str, str]] = set()
        issues: list[ContinuityIssue] = []

        for call in facts.calls:
            method, path = call.method.upper(), normalize_path(call.path)
            called.add((method, path))
            if (method, path) in declared:
                continue
            issues.append(ContinuityIssue(
                type="api-mismatch",
                frontend=f"{call.file}:{call.line} - {method} {path}",
                backend="No matching endpoint found",
                message=f"Frontend calls {method} {path} but no matching backend endpoint exists",
                suggestion=f"Add {method} {path} endpoint to your backend or update the frontend call",
            ))

        for endpoint in endpoints:
            if (endpoint.method, normalize_path(endpoint.path)) in called:
                continue
            issues.append(ContinuityIssue(
                type="api-mismatch",
                frontend="No frontend usage found",
                backend=f"{endpoint.method} {endpoint.path}",
                message=f"Backend endpoint {endpoint.method} {endpoint.path} is not used by any frontend code",
                suggestion="Remove unused endpoint or add frontend usage if needed",
            ))
        return issues

    def check_components(self, facts: ProjectFacts) -> list[ContinuityIssue]:
        """Components used in markup but defined nowhere in the project."""
        defined = {c.name for c in facts.components} | self.ignore_components
        issues: list[ContinuityIssue] = []
        for usage in facts.usages:
            if usage.name in defined:
                continue
            issues.append(ContinuityIssue(
                type="component-missing",
                frontend=f"{usage.file}:{usage.line} - Uses {usage.name}",
                backend="Component definition not found",
                message=f"Component {usage.name} is used but not defined",
                suggestion=f"Create {usage.name} component or check import path",
            ))
        return issues

    def check_routes(self, facts: ProjectFacts) -> list[ContinuityIssue]:
        """Navigation targets that no router declaration or page file defines."""
        issues: list[ContinuityIssue] = []
        for nav in facts.navigations:
            if nav.route in facts.declared_routes:
                continue
            issues.append(ContinuityIssue(
                type="route-undefined",
                frontend=f"{nav.file}:{nav.line} - Navigates to {nav.route}",
                backend="Route definition not found",
                message=f"Navigation to {nav.route} found but route is not defined",
                suggestion=f"Define route {nav.route} in your router configuration",
            ))
        return issues

    def check_authentication(self, facts: ProjectFacts) -> list[ContinuityIssue]:
        """Authentication calls whose endpoint is not declared."""
        auth = self.context.get("authentication") or {}
        auth_type = auth.get("type")
        if not auth_type or auth_type == "none":
            return []

        auth_paths = {
            normalize_path(e.path)
            for e in self.declared_endpoints()
            if "auth" in e.path or e.authentication
        }

        issues: list[ContinuityIssue] = []
        seen: set[tuple[str, int, str]] = set()
        for call in facts.auth_calls:
            key = (call.file, call.line, call.endpoint)
            if key in seen:
                continue
            seen.add(key)
            if normalize_path(call.endpoint) in auth_paths:
                continue
            issues.append(ContinuityIssue(
                type="auth-mismatch",
                frontend=f"{call.file}:{call.line} - authentication call to {call.endpoint}",
                backend="Auth endpoint not found",
                message=f"Frontend makes authentication call to {call.endpoint} but endpoint is not defined",
                suggestion=f"Add {call.endpoint} authentication endpoint to your backend",
            ))
        return issues

    # ------------------------------------------------------------------
    # Context updates
    # ------------------------------------------------------------------

    def update_context_from_code(self, root: Path) -> ContextPatch:
        """
        Discover endpoints, components and models from code.

        Discovered lists replace the corresponding context lists wholesale;
        nothing is diffed. A kind with no discoveries is left out of the patch.

        Args:
            root: Project root directory.

        Returns:
            Patch to hand to :func:`apply_patch`.
        """
        facts = self.collect_facts(root)

        api = None
        if facts.routes:
            api = {
                **(self.context.get("api") or {}),
                "endpoints": [route_to_endpoint(r) for r in facts.routes],
            }

        frontend = None
        components = _unique_components(facts.components)
        if components:
            frontend = {
                **(self.context.get("frontend") or {}),
                "components": components,
            }

        database = None
        models = _unique_models(facts.models)
        if models:
            database = {
                **(self.context.get("database") or {}),
                "models": models,
            }

        return ContextPatch(api=api, frontend=frontend, database=database)

    def generate_missing_endpoints(self, calls: Iterable[FrontendCall]) -> list[Endpoint]:
        """
        Propose endpoints for frontend calls whose path is not declared.

        Args:
            calls: Frontend calls, e.g. from ``discover_frontend_calls``.

        Returns:
            One endpoint per distinct (method, path), in call order.
        """
        declared_paths = {normalize_path(e.path) for e in self.declared_endpoints()}
        generated: list[Endpoint] = []
        seen: set[tuple[str, str]] = set()

        for call in calls:
            path = normalize_path(call.path)
            method = call.method.upper()
            if not path or path in declared_paths or (method, path) in seen:
                continue
            seen.add((method, path))
            generated.append(Endpoint(
                path=path,
                method=method,
                description=f"Auto-generated endpoint for {path}",
                parameters=tuple(infer_parameters(call.path)),
                authentication=should_require_auth(path),
            ))
        return generated


def route_to_endpoint(route: BackendRoute) -> dict[str, Any]:
    return {
        "path": route.path,
        "method": route.method,
        "description": route.description or f"Discovered from {route.file}",
    }


def _unique_components(components: list[ComponentDefinition]) -> list[dict[str, Any]]:
    result: list[dict[str, Any]] = []
    seen: set[tuple[str, str]] = set()
    for component in components:
        key = (component.name, component.file)
        if key in seen:
            continue
        seen.add(key)
        result.append({"name": component.name, "path": component.file})
    return result


def _unique_models(models: list[ModelDefinition]) -> list[dict[str, Any]]:
    result: list[dict[str, Any]] = []
    seen: set[str] = set()
    for model in models:
        if model.name in seen:
            continue
        seen.add(model.name)
        entry: dict[str, Any] = {
            "name": model.name,
            "fields": [{"name": name, "type": field_type} for name, field_type in model.fields],
        }
        if model.table:
            entry["table"] = model.table
        result.append(entry)
    return result


def infer_parameters(raw_path: str) -> list[dict[str, Any]]:
    """
    Parameters implied by a call path.

    ``:name``, ``{name}`` and ``[name]`` segments are required path
    parameters; query-string keys are optional query parameters.
    """
    params: list[dict[str, Any]] = []
    seen: set[str] = set()

    for segment in normalize_path(raw_path).split("/"):
        for regex in PATH_PARAM_RES:
            match = regex.match(segment)
            if match and match.group(1) not in seen:
                seen.add(match.group(1))
                params.append({
                    "name": match.group(1),
                    "type": "string",
                    "required": True,
                    "description": "Path parameter",
                })
                break

    query = raw_path.split("?", 1)[1].split("#", 1)[0] if "?" in raw_path else ""
    for key, _ in parse_qsl(query, keep_blank_values=True):
        if key in seen:
            continue
        seen.add(key)
        params.append({
            "name": key,
            "type": "string",
            "required": False,
            "description": "Query parameter",
        })
    return params


def should_require_auth(path: str) -> bool:
    lowered = path.lower()
    return any(marker in lowered for marker in AUTH_REQUIRED_MARKERS)


def apply_patch(context: dict[str, Any], patch: ContextPatch) -> dict[str, Any]:
    """
    Merge a patch into a copy of the context, one section at a time.

    Keys from the patch win over keys already in the section.

    Returns:
        The updated context. The input is not modified.
    """
    updated = copy.deepcopy(context)
    for key, section in patch.sections().items():
        existing = updated.get(key)
        if isinstance(existing, dict):
            updated[key] = {**existing, **copy.deepcopy(section)}
        else:
            updated[key] = copy.deepcopy(section)
    return updated


def discover_frontend_calls(root: Path, config: dict[str, Any] | None = None) -> list[FrontendCall]:
    """HTTP calls made by frontend code under root, independent of any context."""
    return ContinuityAnalyzer(config=config).discover_frontend_calls(root)
