"""
Base extractor class and registry for source-fact extractors.

An extractor turns the text of one source file into ``SourceFacts``: HTTP
calls, route registrations, component definitions and usages, navigation
targets, authentication calls and database models.

To add support for a new language:
1. Create a class inheriting from SourceFactExtractor
2. Implement the `extract` method
3. Register it with the @ExtractorRegistry.register decorator

Example:
    @ExtractorRegistry.register("elixir", [".ex", ".exs"])
    class ElixirExtractor(SourceFactExtractor):
        def extract(self, source: str, file: str) -> SourceFacts:
            ...
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from typing import Callable, Type

    from context_bridge.models import SourceFacts

logger = logging.getLogger(__name__)


class ExtractorRegistry:
    """
    Registry for source-fact extractors.

    Maps file extensions to a language name and the language name to an
    extractor class. Instances are created on first use and reused.
    """

    _extractor_classes: ClassVar[dict[str, Type["SourceFactExtractor"]]] = {}
    _extension_map: ClassVar[dict[str, str]] = {}  # .ext -> language name
    _instances: ClassVar[dict[str, "SourceFactExtractor"]] = {}

    @classmethod
    def register(
        cls,
        language: str,
        extensions: list[str],
    ) -> Callable[[Type["SourceFactExtractor"]], Type["SourceFactExtractor"]]:
        """
        Decorator to register an extractor class.

        Args:
            language: Language name (e.g., "python", "javascript").
            extensions: List of file extensions (e.g., [".py"]).

        Returns:
            Decorator function.
        """
        def decorator(extractor_class: Type["SourceFactExtractor"]) -> Type["SourceFactExtractor"]:
            cls.register_extractor(language, extensions, extractor_class)
            return extractor_class
        return decorator

    @classmethod
    def register_extractor(
        cls,
        language: str,
        extensions: list[str],
        extractor_class: Type["SourceFactExtractor"],
    ) -> None:
        """
        Register an extractor class for a language.

        Registering a language again replaces its extractor.
        """
        cls._extractor_classes[language] = extractor_class
        cls._instances.pop(language, None)

        for ext in extensions:
            ext_lower = ext.lower()
            if not ext_lower.startswith("."):
                ext_lower = "." + ext_lower
            cls._extension_map[ext_lower] = language

        logger.debug("Registered extractor for %s: %s", language, extensions)

    @classmethod
    def get_extractor(cls, filepath: Path | str) -> "SourceFactExtractor" | None:
        """
        Get the extractor for a file, by its extension.

        Returns:
            Extractor instance, or None if no extractor handles the file.
        """
        language = cls._extension_map.get(Path(filepath).suffix.lower())
        if not language:
            return None
        return cls.get_extractor_for_language(language)

    @classmethod
    def get_extractor_for_language(cls, language: str) -> "SourceFactExtractor" | None:
        extractor_class = cls._extractor_classes.get(language)
        if not extractor_class:
            return None
        if language not in cls._instances:
            cls._instances[language] = extractor_class()
        return cls._instances[language]

    @classmethod
    def list_languages(cls) -> list[str]:
        """Get list of registered languages."""
        return list(cls._extractor_classes.keys())

    @classmethod
    def list_extensions(cls) -> dict[str, str]:
        """Get mapping of extensions to languages."""
        return dict(cls._extension_map)


class SourceFactExtractor(ABC):
    """
    Abstract base class for source-fact extractors.

    Extractors are pure: they see the file text and its project-relative
    path, never the filesystem.
    """

    @abstractmethod
    def extract(self, source: str, file: str) -> SourceFacts:
        """
        Extract facts from one source file.

        Args:
            source: File contents.
            file: Path relative to the project root, used in fact locations.

        Returns:
            Facts found in the file.
        """
        ...
