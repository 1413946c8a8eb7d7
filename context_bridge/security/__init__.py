"""
Security scanning: declared patterns, built-in checks and auto-fix.
"""

from context_bridge.security.rules import (
    DEFAULT_PATTERNS,
    FIXABLE_RULES,
    RULES,
    RuleSpec,
    generate_security_config,
)
from context_bridge.security.scanner import SecurityScanner

__all__ = [
    "DEFAULT_PATTERNS",
    "FIXABLE_RULES",
    "RULES",
    "RuleSpec",
    "SecurityScanner",
    "generate_security_config",
]
