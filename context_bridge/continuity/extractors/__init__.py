"""
Source-fact extractors for continuity analysis.

Importing this package registers the built-in extractors.
"""

from context_bridge.continuity.extractors.base import ExtractorRegistry, SourceFactExtractor
from context_bridge.continuity.extractors.lexical import BackendLexicalExtractor, LexicalExtractor
from context_bridge.continuity.extractors.python import PythonExtractor

__all__ = [
    "BackendLexicalExtractor",
    "ExtractorRegistry",
    "LexicalExtractor",
    "PythonExtractor",
    "SourceFactExtractor",
]
