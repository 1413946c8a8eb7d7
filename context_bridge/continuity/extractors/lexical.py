"""
Regex-based extractor for JavaScript, TypeScript, Vue and the other backend
languages.

Matching is line by line, so every fact carries a 1-based line number. It is
lexical only: dynamically built URLs, routes registered in loops and
re-exported components are invisible to it.
"""

from __future__ import annotations

import logging
import re
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from context_bridge.config import HTTP_METHODS
from context_bridge.continuity.extractors.base import ExtractorRegistry, SourceFactExtractor
from context_bridge.models import (
    AuthCall,
    BackendRoute,
    ComponentDefinition,
    ComponentUsage,
    FrontendCall,
    ModelDefinition,
    Navigation,
    SourceFacts,
)

if TYPE_CHECKING:
    from typing import Iterator

logger = logging.getLogger(__name__)


_QUOTED = r"""['"`]([^'"`]+)['"`]"""
_METHODS = "|".join(m.lower() for m in HTTP_METHODS)

# Frontend HTTP calls
FETCH_RE = re.compile(r"(?<![\w$.])fetch\s*\(\s*" + _QUOTED)
FETCH_METHOD_RE = re.compile(r"""method\s*:\s*['"`](\w+)['"`]""", re.IGNORECASE)
CLIENT_CALL_RE = re.compile(r"(?<![\w$.])(?:axios|api)\.(get|post|put|delete|patch)\s*\(\s*" + _QUOTED)

# Backend route registrations: app.get('/x', ...), router.post(...), @app.get("/x")
ROUTE_CALL_RE = re.compile(r"(?<![\w$.])(?:app|router)\.(" + _METHODS + r")\s*\(\s*" + _QUOTED)
ROUTE_DECORATOR_RE = re.compile(r"@\w+\.route\s*\(\s*" + _QUOTED + r"(.*)")
DECORATOR_METHODS_RE = re.compile(r"methods\s*=\s*[\[(]([^\])]*)[\])]")
QUOTED_WORD_RE = re.compile(r"""['"](\w+)['"]""")

# Components
COMPONENT_DEFINITION_RES = (
    re.compile(r"(?<![\w$])function\s+([A-Z][A-Za-z0-9]*)\s*[<(]"),
    re.compile(r"(?<![\w$])const\s+([A-Z][A-Za-z0-9]*)\s*(?::[^=]*)?=\s*(?:async\s*)?\("),
    re.compile(r"(?<![\w$])class\s+([A-Z][A-Za-z0-9]*)\s+extends\s+(?:React\.)?(?:Pure)?Component\b"),
)
VUE_COMPONENT_NAME_RE = re.compile(r"export\s+default\s+\{[\s\S]*?\bname\s*:\s*" + _QUOTED)
COMPONENT_USAGE_RE = re.compile(r"(?<![\w$.])<([A-Z][A-Za-z0-9]*)(?=[\s/]|>(?!\s*\())")
# TypeScript without JSX: every `<Name>` is a type parameter or assertion
NO_MARKUP_EXTENSIONS = frozenset({".ts", ".mts", ".cts"})

# Client-side routing
ROUTE_DECLARATION_RE = re.compile(r"(?<![\w$])path\s*[=:]\s*" + _QUOTED)
NAVIGATION_RES = (
    re.compile(r"(?<![\w$.])navigate\s*\(\s*" + _QUOTED),
    re.compile(r"(?<![\w$.])router\.(?:push|replace)\s*\(\s*" + _QUOTED),
    re.compile(r"(?<![\w$.])history\.(?:push|replace)\s*\(\s*" + _QUOTED),
)

# Authentication
AUTH_LINE_RE = re.compile(r"login|logout|register|signin|signup|auth", re.IGNORECASE)
AUTH_ENDPOINT_RE = re.compile(r"""['"`]([^'"`]*auth[^'"`]*)['"`]""", re.IGNORECASE)

# ORM models declared by name
MODEL_RES = (
    re.compile(r"""mongoose\.model\s*(?:<[^>]*>)?\s*\(\s*['"](\w+)['"]"""),
    re.compile(r"""sequelize\.define\s*\(\s*['"](\w+)['"]"""),
)


def _line_of(source: str, offset: int) -> int:
    return source.count("\n", 0, offset) + 1


def _looks_like_endpoint(value: str) -> bool:
    return value.startswith("/") or value.lower().startswith(("http://", "https://"))


def iter_route_registrations(line: str) -> Iterator[tuple[str, str]]:
    """Yield (METHOD, path) for every route registration on one line."""
    for match in ROUTE_CALL_RE.finditer(line):
        yield match.group(1).upper(), match.group(2)

    match = ROUTE_DECORATOR_RE.search(line)
    if match:
        path, rest = match.group(1), match.group(2)
        methods_match = DECORATOR_METHODS_RE.search(rest)
        methods = ["GET"]
        if methods_match:
            methods = [m.upper() for m in QUOTED_WORD_RE.findall(methods_match.group(1))] or ["GET"]
        for method in methods:
            yield method, path


def extract_backend_routes(source: str, file: str) -> list[BackendRoute]:
    """Route registrations in any backend language."""
    routes: list[BackendRoute] = []
    for i, line in enumerate(source.splitlines(), 1):
        for method, path in iter_route_registrations(line):
            routes.append(BackendRoute(method=method, path=path, file=file, line=i))
    return routes


@ExtractorRegistry.register(
    "javascript",
    [".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs", ".vue"],
)
class LexicalExtractor(SourceFactExtractor):
    """Extract every fact kind with regular expressions."""

    def extract(self, source: str, file: str) -> SourceFacts:
        facts = SourceFacts()
        lines = source.splitlines()
        has_markup = PurePosixPath(file).suffix.lower() not in NO_MARKUP_EXTENSIONS

        for i, line in enumerate(lines, 1):
            facts.calls.extend(self._calls_on_line(line, file, i))

            for method, path in iter_route_registrations(line):
                facts.routes.append(BackendRoute(method=method, path=path, file=file, line=i))

            for regex in COMPONENT_DEFINITION_RES:
                for match in regex.finditer(line):
                    facts.components.append(ComponentDefinition(match.group(1), file, i))

            if has_markup:
                for match in COMPONENT_USAGE_RE.finditer(line):
                    facts.usages.append(ComponentUsage(match.group(1), file, i))

            for match in ROUTE_DECLARATION_RE.finditer(line):
                facts.declared_routes.append(match.group(1))

            for regex in NAVIGATION_RES:
                for match in regex.finditer(line):
                    facts.navigations.append(Navigation(match.group(1), file, i))

            auth_call = self._auth_call_on_line(line, file, i)
            if auth_call:
                facts.auth_calls.append(auth_call)

            for regex in MODEL_RES:
                for match in regex.finditer(line):
                    facts.models.append(ModelDefinition(match.group(1), file, i))

        facts.components.extend(self._vue_components(source, file))
        return facts

    def _calls_on_line(self, line: str, file: str, lineno: int) -> list[FrontendCall]:
        calls: list[FrontendCall] = []
        for match in FETCH_RE.finditer(line):
            method_match = FETCH_METHOD_RE.search(line, match.end())
            method = method_match.group(1).upper() if method_match else "GET"
            calls.append(FrontendCall(method, match.group(1), file, lineno))
        for match in CLIENT_CALL_RE.finditer(line):
            calls.append(FrontendCall(match.group(1).upper(), match.group(2), file, lineno))
        return calls

    def _auth_call_on_line(self, line: str, file: str, lineno: int) -> AuthCall | None:
        if not AUTH_LINE_RE.search(line):
            return None
        for match in AUTH_ENDPOINT_RE.finditer(line):
            endpoint = match.group(1)
            if _looks_like_endpoint(endpoint):
                return AuthCall(endpoint, file, lineno)
        return None

    def _vue_components(self, source: str, file: str) -> list[ComponentDefinition]:
        components: list[ComponentDefinition] = []
        match = VUE_COMPONENT_NAME_RE.search(source)
        if match:
            components.append(ComponentDefinition(match.group(1), file, _line_of(source, match.start(1))))

        # A single-file component is usable under its file name
        stem = PurePosixPath(file).stem
        if file.endswith(".vue") and stem[:1].isupper():
            components.append(ComponentDefinition(stem, file, 1))
        return components


@ExtractorRegistry.register(
    "backend",
    [".php", ".java", ".cs", ".rb", ".go"],
)
class BackendLexicalExtractor(SourceFactExtractor):
    """Route registrations only, for backend languages without a richer extractor."""

    def extract(self, source: str, file: str) -> SourceFacts:
        return SourceFacts(routes=extract_backend_routes(source, file))
