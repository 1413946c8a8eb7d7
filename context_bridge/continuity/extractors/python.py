"""
Python AST-based extractor for context_bridge.

Finds route decorators (FastAPI, Flask, Starlette style) and ORM models
(SQLAlchemy, Django, SQLModel). Falls back to the lexical route rules for
files with syntax errors.
"""

from __future__ import annotations

import ast
import logging

from context_bridge.config import HTTP_METHODS
from context_bridge.continuity.extractors.base import ExtractorRegistry, SourceFactExtractor
from context_bridge.continuity.extractors.lexical import extract_backend_routes
from context_bridge.models import BackendRoute, ModelDefinition, SourceFacts

logger = logging.getLogger(__name__)


ROUTE_METHODS = frozenset(m.lower() for m in HTTP_METHODS)
ROUTE_DECORATORS_WITH_METHODS = frozenset({"route", "api_route"})

# Base classes that make a class a database model
MODEL_BASES = frozenset({"Base", "Model", "models.Model", "db.Model"})
MODEL_MARKER = "__tablename__"

# Calls that declare a column in a model body
COLUMN_FACTORIES = frozenset({"Column", "mapped_column", "Field", "db.Column", "sa.Column"})


@ExtractorRegistry.register("python", [".py", ".pyw"])
class PythonExtractor(SourceFactExtractor):
    """
    Python extractor using the ast module.

    Falls back to regex route matching for files with syntax errors.
    """

    def extract(self, source: str, file: str) -> SourceFacts:
        """
        Extract routes and models from a Python file.

        Args:
            source: File contents.
            file: Project-relative path.

        Returns:
            SourceFacts with ``routes`` and ``models`` filled in.
        """
        try:
            tree = ast.parse(source, filename=file)
        except SyntaxError as e:
            logger.debug("Syntax error in %s: %s, falling back to regex", file, e)
            return SourceFacts(routes=extract_backend_routes(source, file))

        facts = SourceFacts()
        for node in ast.walk(tree):
            if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                facts.routes.extend(self._routes_from_function(node, file))
            elif isinstance(node, ast.ClassDef):
                model = self._model_from_class(node, file)
                if model:
                    facts.models.append(model)

        facts.routes.sort(key=lambda r: r.line)
        facts.models.sort(key=lambda m: m.line)
        return facts

    def _routes_from_function(
        self,
        node: ast.FunctionDef | ast.AsyncFunctionDef,
        file: str,
    ) -> list[BackendRoute]:
        routes: list[BackendRoute] = []
        docstring = ast.get_docstring(node)
        description = docstring.split("\n")[0].strip() if docstring else None

        for dec in node.decorator_list:
            if not isinstance(dec, ast.Call) or not isinstance(dec.func, ast.Attribute):
                continue
            path = self._first_string_arg(dec)
            if path is None:
                continue

            attr = dec.func.attr.lower()
            if attr in ROUTE_METHODS:
                methods = [attr.upper()]
            elif attr in ROUTE_DECORATORS_WITH_METHODS:
                methods = self._methods_keyword(dec) or ["GET"]
            else:
                continue

            for method in methods:
                routes.append(BackendRoute(
                    method=method,
                    path=path,
                    file=file,
                    line=dec.lineno,
                    description=description,
                ))
        return routes

    def _first_string_arg(self, call: ast.Call) -> str | None:
        if call.args and isinstance(call.args[0], ast.Constant) and isinstance(call.args[0].value, str):
            return call.args[0].value
        for keyword in call.keywords:
            if keyword.arg == "path" and isinstance(keyword.value, ast.Constant):
                return str(keyword.value.value)
        return None

    def _methods_keyword(self, call: ast.Call) -> list[str]:
        for keyword in call.keywords:
            if keyword.arg == "methods" and isinstance(keyword.value, (ast.List, ast.Tuple, ast.Set)):
                return [
                    elt.value.upper()
                    for elt in keyword.value.elts
                    if isinstance(elt, ast.Constant) and isinstance(elt.value, str)
                ]
        return []

    def _model_from_class(self, node: ast.ClassDef, file: str) -> ModelDefinition | None:
        bases = [self._get_name(b) for b in node.bases]
        table = self._table_name(node)
        is_model = table is not None or any(self._is_model_base(b, node) for b in bases)
        if not is_model:
            return None

        return ModelDefinition(
            name=node.name,
            file=file,
            line=node.lineno,
            fields=tuple(self._fields(node)),
            table=table,
        )

    def _is_model_base(self, base: str, node: ast.ClassDef) -> bool:
        if base in MODEL_BASES or base.endswith(".Model"):
            return True
        # class Hero(SQLModel, table=True)
        if base == "SQLModel":
            return any(
                k.arg == "table" and isinstance(k.value, ast.Constant) and k.value.value is True
                for k in node.keywords
            )
        return False

    def _table_name(self, node: ast.ClassDef) -> str | None:
        for item in node.body:
            if isinstance(item, ast.Assign):
                for target in item.targets:
                    if isinstance(target, ast.Name) and target.id == MODEL_MARKER:
                        if isinstance(item.value, ast.Constant):
                            return str(item.value.value)
                        return ""
        return None

    def _fields(self, node: ast.ClassDef) -> list[tuple[str, str]]:
        """(name, type) for every column declared in the class body."""
        fields: list[tuple[str, str]] = []
        for item in node.body:
            if isinstance(item, ast.Assign) and len(item.targets) == 1:
                target = item.targets[0]
                if isinstance(target, ast.Name) and isinstance(item.value, ast.Call):
                    field_type = self._column_type(item.value)
                    if field_type:
                        fields.append((target.id, field_type))
            elif isinstance(item, ast.AnnAssign) and isinstance(item.target, ast.Name):
                name = item.target.id
                if name.startswith("_"):
                    continue
                field_type = None
                if isinstance(item.value, ast.Call):
                    field_type = self._column_type(item.value)
                    if field_type is None:
                        # relationship() and other non-column calls
                        continue
                if not field_type or field_type == "unknown":
                    field_type = self._annotation_type(item.annotation)
                fields.append((name, field_type))
        return fields

    def _column_type(self, call: ast.Call) -> str | None:
        func = self._get_name(call.func)
        short = func.split(".")[-1]

        # Django: models.CharField(...)
        if (short.endswith("Field") and short != "Field") or short == "ForeignKey":
            return short
        if func not in COLUMN_FACTORIES and short not in COLUMN_FACTORIES:
            return None

        for arg in call.args:
            # Column("name", String) puts the column name first
            if isinstance(arg, ast.Constant) and isinstance(arg.value, str):
                continue
            if isinstance(arg, ast.Call):
                return self._get_name(arg.func).split(".")[-1]
            return self._get_name(arg).split(".")[-1]
        return "unknown"

    def _annotation_type(self, annotation: ast.expr) -> str:
        # Mapped[int] -> int
        if isinstance(annotation, ast.Subscript) and self._get_name(annotation.value).split(".")[-1] == "Mapped":
            return ast.unparse(annotation.slice)
        return ast.unparse(annotation)

    def _get_name(self, node: ast.expr) -> str:
        """Get a dotted name from an AST node."""
        if isinstance(node, ast.Name):
            return node.id
        if isinstance(node, ast.Attribute):
            return f"{self._get_name(node.value)}.{node.attr}"
        if isinstance(node, ast.Constant):
            return str(node.value)
        return ast.unparse(node)
