"""
Frontend/backend continuity checks and code-driven context discovery.
"""

from context_bridge.continuity.analyzer import (
    ContinuityAnalyzer,
    apply_patch,
    discover_frontend_calls,
    normalize_path,
)
from context_bridge.continuity.extractors import ExtractorRegistry, SourceFactExtractor

__all__ = [
    "ContinuityAnalyzer",
    "ExtractorRegistry",
    "SourceFactExtractor",
    "apply_patch",
    "discover_frontend_calls",
    "normalize_path",
]
