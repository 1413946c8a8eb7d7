"""
Context Bridge - Keep a machine-readable project context in sync with code.

Scans a project for security issues, checks that frontend and backend agree
with the declared API, remembers assistant interactions and validates the
context file against its schema.
"""

__version__ = "1.0.0"

from context_bridge.config import DEFAULT_CONFIG, DEFAULT_EXCLUDE
from context_bridge.context import ContextStore
from context_bridge.continuity import ContinuityAnalyzer
from context_bridge.memory import ContextMemory
from context_bridge.security import SecurityScanner
from context_bridge.validator import ContextValidator

__all__ = [
    "ContextMemory",
    "ContextStore",
    "ContextValidator",
    "ContinuityAnalyzer",
    "DEFAULT_CONFIG",
    "DEFAULT_EXCLUDE",
    "SecurityScanner",
    "__version__",
]
