"""
Security rule table, default patterns and per-application-type presets.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import TYPE_CHECKING

from context_bridge.models import SecurityPattern
from context_bridge.security.autofix import fix_hardcoded_api_key, fix_insecure_http

if TYPE_CHECKING:
    from pathlib import Path
    from typing import Any, Callable

    from context_bridge.security.autofix import FixOutcome


@dataclass(frozen=True)
class RuleSpec:
    """How a pattern rule is explained and, optionally, fixed."""

    suggestion: str
    fixer: Callable[[str, Path], FixOutcome | None] | None = None


FALLBACK_SUGGESTION = "Review this security issue and apply appropriate fixes"

RULES: dict[str, RuleSpec] = {
    "hardcoded-api-key": RuleSpec(
        "Move to environment variable: process.env.API_KEY",
        fix_hardcoded_api_key,
    ),
    "hardcoded-password": RuleSpec(
        "Use environment variables and bcrypt for password hashing",
    ),
    "sql-injection-risk": RuleSpec(
        "Use parameterized queries or an ORM like Prisma/Sequelize",
    ),
    "xss-vulnerability": RuleSpec(
        "Use DOMPurify to sanitize HTML or avoid innerHTML",
    ),
    "insecure-http": RuleSpec(
        "Replace with https:// for production URLs",
        fix_insecure_http,
    ),
}

FIXABLE_RULES = frozenset(name for name, entry in RULES.items() if entry.fixer)


def suggestion_for(rule: str) -> str:
    """Suggestion text for a pattern rule, or the generic review text."""
    entry = RULES.get(rule)
    return entry.suggestion if entry else FALLBACK_SUGGESTION


def fixers() -> dict[str, Callable[[str, Path], FixOutcome | None]]:
    """Rule name to fixer, for every fixable rule."""
    return {name: RULES[name].fixer for name in FIXABLE_RULES}


DEFAULT_PATTERNS: tuple[SecurityPattern, ...] = (
    SecurityPattern(
        name="hardcoded-api-key",
        pattern=r"""(api[_-]?key|secret[_-]?key|access[_-]?token)\s*["']?\s*[=:]\s*["'][A-Za-z0-9_\-]{10,}["']""",
        severity="error",
        message="Hardcoded API key detected. Use environment variables instead.",
    ),
    SecurityPattern(
        name="hardcoded-password",
        pattern=r"""password\s*[=:]\s*["'][^"']{3,}["']""",
        severity="error",
        message="Hardcoded password detected. Use secure configuration management.",
    ),
    SecurityPattern(
        name="sql-injection-risk",
        pattern=r"(SELECT|INSERT|UPDATE|DELETE).*[+].*[$]|[$][{].*[}]",
        severity="error",
        message="Potential SQL injection vulnerability. Use parameterized queries.",
    ),
    SecurityPattern(
        name="xss-vulnerability",
        pattern=r"""innerHTML\s*=\s*[^"']*[$]|dangerouslySetInnerHTML""",
        severity="warning",
        message="Potential XSS vulnerability. Sanitize user input before rendering.",
    ),
    SecurityPattern(
        name="insecure-http",
        pattern=r"http://(?!localhost|127\.0\.0\.1|0\.0\.0\.0)",
        severity="warning",
        message="Insecure HTTP protocol detected. Use HTTPS in production.",
    ),
)

# Written into a freshly initialized context on top of the defaults
DATA_HANDLING_PATTERNS: tuple[SecurityPattern, ...] = (
    SecurityPattern(
        name="credit-card-data",
        pattern=r"(credit[_-]?card|cc[_-]?number|card[_-]?number)\s*[=:]",
        severity="error",
        message="Credit card data handling detected. Ensure PCI DSS compliance.",
    ),
    SecurityPattern(
        name="personal-data",
        pattern=r"(ssn|social[_-]?security|phone[_-]?number|email[_-]?address)\s*[=:]",
        severity="warning",
        message="Personal data handling detected. Ensure GDPR/privacy compliance.",
    ),
)

ALL_RULES_ON: dict[str, bool] = {
    "enforceHttps": True,
    "inputSanitization": True,
    "sqlInjectionPrevention": True,
    "xssProtection": True,
    "csrfProtection": True,
    "corsConfiguration": True,
    "rateLimiting": True,
    "dataValidation": True,
}

PRESET_PATTERNS: dict[str, tuple[SecurityPattern, ...]] = {
    "e-commerce": (
        SecurityPattern(
            name="pci-compliance-check",
            pattern=r"(card[_-]?number|cvv|expiry)\s*[=:]",
            severity="error",
            message="Credit card data detected. Ensure PCI DSS compliance and use secure payment processors.",
        ),
        SecurityPattern(
            name="payment-validation",
            pattern=r"payment.*validate|charge.*card",
            severity="warning",
            message="Payment processing detected. Ensure proper validation and error handling.",
        ),
    ),
    "healthcare": (
        SecurityPattern(
            name="hipaa-compliance",
            pattern=r"(medical[_-]?record|patient[_-]?data|health[_-]?info)",
            severity="error",
            message="Medical data detected. Ensure HIPAA compliance and data encryption.",
        ),
        SecurityPattern(
            name="phi-protection",
            pattern=r"(ssn|dob|medical[_-]?id)",
            severity="error",
            message="Protected Health Information (PHI) detected. Implement proper access controls.",
        ),
    ),
    "financial": (
        SecurityPattern(
            name="financial-data",
            pattern=r"(account[_-]?number|routing[_-]?number|balance)",
            severity="error",
            message="Financial data detected. Ensure SOX compliance and data encryption.",
        ),
        SecurityPattern(
            name="transaction-logging",
            pattern=r"transaction|transfer|deposit|withdraw",
            severity="warning",
            message="Financial transaction detected. Ensure proper audit logging.",
        ),
    ),
}

PRESET_AUTHENTICATION: dict[str, dict[str, Any]] = {
    "e-commerce": {
        "type": "jwt",
        "config": {"expiry": "15m", "refreshToken": True},
    },
}


def generate_security_config(app_type: str) -> dict[str, Any]:
    """
    Build the security (and, where relevant, authentication) sections for an
    application type.

    Args:
        app_type: One of "e-commerce", "healthcare", "financial".

    Returns:
        A partial project context, or an empty dict for unknown types.
    """
    domain_patterns = PRESET_PATTERNS.get(app_type)
    if domain_patterns is None:
        return {}

    config: dict[str, Any] = {
        "security": {
            "rules": dict(ALL_RULES_ON),
            "patterns": [p.to_dict() for p in DEFAULT_PATTERNS + domain_patterns],
        },
    }
    if app_type in PRESET_AUTHENTICATION:
        config["authentication"] = copy.deepcopy(PRESET_AUTHENTICATION[app_type])
    return config
