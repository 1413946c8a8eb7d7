"""
Project context validation: JSON schema plus business rules.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError

from context_bridge.models import ValidationIssue, ValidationResult

if TYPE_CHECKING:
    from typing import Any

    from jsonschema.exceptions import ValidationError

logger = logging.getLogger(__name__)


SCHEMA_PATH = Path(__file__).parent / "schemas" / "project-context.schema.json"

SENSITIVE_FIELD_MARKERS = ("password", "email", "phone", "ssn", "credit_card")


def load_schema(path: Path = SCHEMA_PATH) -> dict[str, Any] | None:
    """
    Load a JSON schema from disk.

    Returns:
        The schema, or None if it is missing or not valid JSON.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Could not load schema %s, validation will be limited: %s", path, e)
        return None


class ContextValidator:
    """
    Validate a project context before it is persisted.

    The validator is built once with its compiled schema and is pure
    afterwards: ``validate`` never raises and never modifies its input.
    """

    def __init__(self, schema: dict[str, Any] | None = None) -> None:
        """
        Initialize the validator.

        Args:
            schema: JSON schema (Draft 2020-12). With None, or with a schema
                that is itself invalid, only the required-field checks and
                business rules run.
        """
        self.schema_validator: Draft202012Validator | None = None
        if schema is not None:
            try:
                Draft202012Validator.check_schema(schema)
                self.schema_validator = Draft202012Validator(schema)
            except SchemaError as e:
                logger.warning("Invalid project context schema, validation will be limited: %s", e.message)

    @classmethod
    def from_schema_file(cls, path: Path = SCHEMA_PATH) -> "ContextValidator":
        """Build a validator from a schema file (the bundled one by default)."""
        return cls(load_schema(path))

    def validate(self, context: Any) -> ValidationResult:
        """
        Validate a context.

        Args:
            context: Parsed project context.

        Returns:
            ValidationResult; ``valid`` is False when there is any error.
        """
        if not isinstance(context, dict):
            error = ValidationIssue(
                path="root",
                message="Project context must be a mapping",
                severity="error",
            )
            return ValidationResult(valid=False, errors=(error,))

        errors: list[ValidationIssue] = self._required_fields(context)
        warnings: list[ValidationIssue] = []

        if self.schema_validator is not None:
            seen = {e.path for e in errors}
            for issue in self._schema_errors(context):
                if issue.path not in seen:
                    seen.add(issue.path)
                    errors.append(issue)

        self._business_rules(context, errors, warnings)
        return ValidationResult(valid=not errors, errors=tuple(errors), warnings=tuple(warnings))

    def _required_fields(self, context: dict[str, Any]) -> list[ValidationIssue]:
        errors: list[ValidationIssue] = []
        project = context.get("project")
        if not isinstance(project, dict):
            errors.append(ValidationIssue("project", "Missing required section: project", "error"))
        else:
            for key in ("name", "type"):
                if not project.get(key):
                    errors.append(ValidationIssue(
                        f"project.{key}",
                        f"Missing required field: project.{key}",
                        "error",
                    ))
        if not isinstance(context.get("security"), dict):
            errors.append(ValidationIssue("security", "Missing required section: security", "error"))
        return errors

    def _schema_errors(self, context: dict[str, Any]) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        for error in sorted(self.schema_validator.iter_errors(context), key=lambda e: e.json_path):
            issues.append(ValidationIssue(
                path=_error_path(error),
                message=error.message,
                severity="error",
            ))
        return issues

    def _business_rules(
        self,
        context: dict[str, Any],
        errors: list[ValidationIssue],
        warnings: list[ValidationIssue],
    ) -> None:
        security = context.get("security") if isinstance(context.get("security"), dict) else {}
        rules = security.get("rules") if isinstance(security.get("rules"), dict) else {}

        # Endpoints that need auth while auth is switched off
        auth = context.get("authentication")
        api = context.get("api") if isinstance(context.get("api"), dict) else {}
        if isinstance(auth, dict) and auth.get("type") == "none":
            for i, endpoint in enumerate(api.get("endpoints") or []):
                if isinstance(endpoint, dict) and endpoint.get("authentication"):
                    warnings.append(ValidationIssue(
                        path=f"api.endpoints[{i}].authentication",
                        message=(
                            f"Endpoint {endpoint.get('path')} requires authentication "
                            "but no auth method is configured"
                        ),
                        severity="warning",
                        suggestion="Configure authentication or remove auth requirement from endpoint",
                    ))

        if _has_sensitive_fields(context) and not rules.get("inputSanitization"):
            errors.append(ValidationIssue(
                path="security.rules.inputSanitization",
                message="Input sanitization must be enabled when handling sensitive data",
                severity="error",
                suggestion="Enable inputSanitization in security rules",
            ))

        deployment = context.get("deployment") if isinstance(context.get("deployment"), dict) else {}
        environment = deployment.get("environment") if isinstance(deployment.get("environment"), dict) else {}
        if environment.get("production") and not rules.get("enforceHttps"):
            errors.append(ValidationIssue(
                path="security.rules.enforceHttps",
                message="HTTPS must be enforced in production environment",
                severity="error",
                suggestion="Enable enforceHttps in security rules",
            ))


def _has_sensitive_fields(context: dict[str, Any]) -> bool:
    database = context.get("database")
    if not isinstance(database, dict):
        return False
    for model in database.get("models") or []:
        if not isinstance(model, dict):
            continue
        for field in model.get("fields") or []:
            name = str(field.get("name", "")) if isinstance(field, dict) else str(field)
            if any(marker in name.lower() for marker in SENSITIVE_FIELD_MARKERS):
                return True
    return False


def _error_path(error: ValidationError) -> str:
    """Dotted path of a schema error, with the missing key for ``required``."""
    path = ""
    for part in error.absolute_path:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}" if path else str(part)

    if error.validator == "required":
        missing = next((p for p in error.validator_value if repr(p) in error.message), None)
        if missing:
            path = f"{path}.{missing}" if path else str(missing)

    return path or "root"
