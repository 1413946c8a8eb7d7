"""
Interaction memory for a project context.

Keeps a bounded, newest-first log of interactions under
``contextMemory.aiInteractions`` and derives heuristics from it and from the
rest of the context: usage patterns, project maturity, suggestions and
next steps.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from context_bridge.config import DEFAULT_CONFIG
from context_bridge.models import Interaction
from context_bridge.utils import parse_iso, to_iso, utc_now

if TYPE_CHECKING:
    from typing import Any, Callable

logger = logging.getLogger(__name__)


DEFAULT_PREFERENCES: dict[str, Any] = {
    "codeStyle": "clean",
    "commentLevel": "moderate",
    "errorHandling": "comprehensive",
    "testGeneration": True,
}

ACTION_SUGGESTIONS = {
    "component-creation": "Consider creating a component library for reusable components",
    "api-endpoint-creation": "Consider implementing API documentation with Swagger/OpenAPI",
    "security-fix": "Consider implementing automated security scanning in your CI/CD pipeline",
    "database-model": "Consider setting up database migrations for schema changes",
}

SKILL_AREAS = {
    "component-creation": "Frontend Development",
    "api-endpoint-creation": "Backend Development",
    "security-fix": "Security",
    "database-model": "Database Design",
    "deployment": "DevOps",
}

NEXT_STEPS = {
    "initial": [
        "Define your project structure and main components",
        "Set up basic authentication",
        "Create your first API endpoints",
    ],
    "early": [
        "Implement comprehensive security measures",
        "Add input validation and error handling",
        "Set up testing framework",
    ],
    "developing": [
        "Optimize performance and add caching",
        "Implement CI/CD pipeline",
        "Add monitoring and logging",
    ],
    "mature": [
        "Consider microservices architecture",
        "Implement advanced security features",
        "Add comprehensive documentation",
    ],
}

# (minimum score, level), highest first
MATURITY_LEVELS = ((80, "mature"), (50, "developing"), (25, "early"), (0, "initial"))

MAX_SUGGESTIONS = 5
SUMMARY_RECENT_INTERACTIONS = 5


class ContextMemory:
    """
    Record interactions in a project context and analyze them.

    The memory mutates the context it is given in place; it is the only
    component that writes ``contextMemory``. Callers serialize access.
    """

    def __init__(
        self,
        context: dict[str, Any],
        max_interactions: int | None = None,
        session_gap_minutes: int | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Initialize the memory.

        Args:
            context: Project context, modified in place.
            max_interactions: Cap on stored interactions (default 100).
            session_gap_minutes: Largest gap between two interactions of the
                same session (default 30).
            clock: Returns the current time; tests pass a fixed clock.
        """
        memory_config = DEFAULT_CONFIG["memory"]
        if max_interactions is None:
            max_interactions = memory_config["max_interactions"]
        if session_gap_minutes is None:
            session_gap_minutes = memory_config["session_gap_minutes"]
        self.context = context
        self.max_interactions = max_interactions
        self.session_gap = timedelta(minutes=session_gap_minutes)
        self.clock = clock

    @classmethod
    def from_config(
        cls,
        context: dict[str, Any],
        config: dict[str, Any],
        clock: Callable[[], datetime] = utc_now,
    ) -> "ContextMemory":
        memory_config = config.get("memory", {})
        return cls(
            context,
            max_interactions=memory_config.get("max_interactions"),
            session_gap_minutes=memory_config.get("session_gap_minutes"),
            clock=clock,
        )

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    def _memory(self) -> dict[str, Any]:
        memory = self.context.get("contextMemory")
        if not isinstance(memory, dict):
            memory = {}
            self.context["contextMemory"] = memory
        return memory

    def _raw_interactions(self) -> list[dict[str, Any]]:
        memory = self.context.get("contextMemory") or {}
        interactions = memory.get("aiInteractions") or []
        return [i for i in interactions if isinstance(i, dict)]

    def _touch(self, moment: datetime | None = None) -> None:
        self._memory()["lastUpdated"] = to_iso(moment or self.clock())

    def interactions(self) -> list[Interaction]:
        """All stored interactions, newest first."""
        return [Interaction.from_dict(i) for i in self._raw_interactions()]

    def record_interaction(
        self,
        action: str,
        context: str,
        result: str,
        metadata: dict[str, Any] | None = None,
    ) -> Interaction:
        """
        Record an interaction at the front of the log.

        The log is truncated to ``max_interactions``, dropping the oldest.

        Args:
            action: Kind of interaction, e.g. "component-creation".
            context: What the interaction was about.
            result: What came out of it.
            metadata: Optional free-form details.

        Returns:
            The stored interaction.
        """
        now = self.clock()
        interaction = Interaction(
            timestamp=to_iso(now),
            action=action,
            context=context,
            result=result,
            metadata=metadata,
        )

        memory = self._memory()
        stored = memory.get("aiInteractions")
        if not isinstance(stored, list):
            stored = []
        stored.insert(0, interaction.to_dict())
        del stored[self.max_interactions:]
        memory["aiInteractions"] = stored
        self._touch(now)

        logger.debug("Recorded %s interaction (%d stored)", action, len(stored))
        return interaction

    def get_interactions_by_action(self, action: str, limit: int = 10) -> list[Interaction]:
        """Most recent interactions of one kind, newest first."""
        matching = [i for i in self.interactions() if i.action == action]
        return matching[:limit]

    def get_interactions_by_time_range(self, start: datetime, end: datetime) -> list[Interaction]:
        """
        Interactions with start <= timestamp <= end.

        Naive datetimes are taken as UTC. Interactions with unparseable
        timestamps are never returned.
        """
        start, end = _aware(start), _aware(end)
        result: list[Interaction] = []
        for interaction in self.interactions():
            moment = parse_iso(interaction.timestamp)
            if moment is not None and start <= moment <= end:
                result.append(interaction)
        return result

    def cleanup_old_interactions(self, days_to_keep: int = 30) -> int:
        """
        Drop interactions older than ``days_to_keep`` days.

        Returns:
            Number of interactions removed.
        """
        now = self.clock()
        cutoff = _aware(now) - timedelta(days=days_to_keep)
        raw = self._raw_interactions()

        kept = []
        for item in raw:
            moment = parse_iso(str(item.get("timestamp", "")))
            if moment is None or moment >= cutoff:
                kept.append(item)

        removed = len(raw) - len(kept)
        if removed:
            self._memory()["aiInteractions"] = kept
            self._touch(now)
            logger.info("Removed %d interaction(s) older than %d day(s)", removed, days_to_keep)
        return removed

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    def get_code_generation_preferences(self) -> dict[str, Any]:
        memory = self.context.get("contextMemory") or {}
        preferences = (memory.get("codeGeneration") or {}).get("preferences")
        if preferences:
            return dict(preferences)
        return dict(DEFAULT_PREFERENCES)

    def update_code_generation_preferences(self, **preferences: Any) -> dict[str, Any]:
        """Merge the given preferences over the current ones."""
        merged = {**self.get_code_generation_preferences(), **preferences}
        memory = self._memory()
        code_generation = memory.get("codeGeneration")
        if not isinstance(code_generation, dict):
            code_generation = {}
            memory["codeGeneration"] = code_generation
        code_generation["preferences"] = merged
        self._touch()
        return dict(merged)

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def get_context_summary(self) -> str:
        """Plain-text summary of the project and its recent interactions."""
        project = self.context.get("project") or {}
        lines = [f"Project: {project.get('name', 'unknown')} ({project.get('type', 'unknown')})"]

        if project.get("description"):
            lines.append(f"Description: {project['description']}")

        framework = project.get("framework") or {}
        if framework:
            parts = [f"{key}: {value}" for key, value in framework.items() if value]
            lines.append(f"Framework: {', '.join(parts)}")

        endpoints = (self.context.get("api") or {}).get("endpoints")
        if endpoints:
            lines.append("")
            lines.append(f"API Endpoints ({len(endpoints)}):")
            for endpoint in endpoints:
                auth = " (auth required)" if endpoint.get("authentication") else ""
                lines.append(f"- {endpoint.get('method')} {endpoint.get('path')}{auth}")

        components = (self.context.get("frontend") or {}).get("components")
        if components:
            lines.append("")
            lines.append(f"Components ({len(components)}):")
            for component in components:
                lines.append(f"- {component.get('name')} ({component.get('path')})")

        models = (self.context.get("database") or {}).get("models")
        if models:
            lines.append("")
            lines.append(f"Database Models ({len(models)}):")
            for model in models:
                lines.append(f"- {model.get('name')} ({len(model.get('fields') or [])} fields)")

        recent = self.interactions()[:SUMMARY_RECENT_INTERACTIONS]
        if recent:
            lines.append("")
            lines.append("Recent AI Interactions:")
            for interaction in recent:
                lines.append(f"- {interaction.action}: {interaction.context} -> {interaction.result}")

        return "\n".join(lines) + "\n"

    def analyze_interaction_patterns(self) -> dict[str, Any]:
        """
        Summarize the interaction log.

        Returns:
            Dictionary with total_interactions, common_actions (top 5),
            average_session_length, peak_hours (top 3, UTC), average_per_day,
            active_days, first_interaction and last_interaction.
        """
        interactions = self.interactions()
        if not interactions:
            return {
                "total_interactions": 0,
                "common_actions": [],
                "average_session_length": 0,
                "peak_hours": [],
                "average_per_day": 0,
                "active_days": 0,
                "first_interaction": None,
                "last_interaction": None,
            }

        action_counts = Counter(i.action for i in interactions)
        moments = [m for m in (parse_iso(i.timestamp) for i in interactions) if m is not None]
        hour_counts = Counter(m.hour for m in moments)
        day_counts = Counter(m.date() for m in moments)

        return {
            "total_interactions": len(interactions),
            "common_actions": [
                {"action": action, "count": count}
                for action, count in action_counts.most_common(5)
            ],
            "average_session_length": self._average_session_length(interactions),
            "peak_hours": [
                {"hour": hour, "count": count}
                for hour, count in hour_counts.most_common(3)
            ],
            "average_per_day": (len(moments) / len(day_counts)) if day_counts else 0,
            "active_days": len(day_counts),
            "first_interaction": interactions[-1].timestamp,
            "last_interaction": interactions[0].timestamp,
        }

    def _average_session_length(self, interactions: list[Interaction]) -> float:
        """Mean number of interactions per session, in stored order."""
        if len(interactions) < 2:
            return 0

        sessions: list[int] = [1]
        previous = parse_iso(interactions[0].timestamp)
        for interaction in interactions[1:]:
            current = parse_iso(interaction.timestamp)
            if previous is not None and current is not None and abs(current - previous) <= self.session_gap:
                sessions[-1] += 1
            else:
                sessions.append(1)
            previous = current
        return sum(sessions) / len(sessions)

    def _has_authentication(self) -> bool:
        auth = self.context.get("authentication") or {}
        return bool(auth.get("type")) and auth.get("type") != "none"

    def maturity_score(self) -> int:
        """
        Score project completeness from 0 to 100.

        Every facet only ever adds points, so declaring more never lowers
        the score.
        """
        score = 0
        if (self.context.get("api") or {}).get("endpoints"):
            score += 20
        if self._has_authentication():
            score += 20
        if ((self.context.get("security") or {}).get("rules") or {}).get("enforceHttps"):
            score += 15
        if (self.context.get("database") or {}).get("models"):
            score += 15
        if (self.context.get("frontend") or {}).get("components"):
            score += 15
        if (self.context.get("deployment") or {}).get("platform"):
            score += 15
        return score

    def assess_project_maturity(self) -> str:
        """One of "initial", "early", "developing", "mature"."""
        score = self.maturity_score()
        for minimum, level in MATURITY_LEVELS:
            if score >= minimum:
                return level
        return "initial"

    def generate_suggestions(self) -> list[str]:
        """Up to five suggestions, the one from the top action first."""
        suggestions: list[str] = []

        common = self.analyze_interaction_patterns()["common_actions"]
        if common:
            top_suggestion = ACTION_SUGGESTIONS.get(common[0]["action"])
            if top_suggestion:
                suggestions.append(top_suggestion)

        if not (self.context.get("api") or {}).get("endpoints"):
            suggestions.append("Define your API endpoints in the project context for better continuity checking")
        if not self._has_authentication():
            suggestions.append("Consider implementing authentication for your application")
        if not ((self.context.get("security") or {}).get("rules") or {}).get("enforceHttps"):
            suggestions.append("Enable HTTPS enforcement for production security")
        if not (self.context.get("frontend") or {}).get("components"):
            suggestions.append("Document your frontend components for better project understanding")
        if not (self.context.get("database") or {}).get("models"):
            suggestions.append("Define your database models in the project context")

        return suggestions[:MAX_SUGGESTIONS]

    def identify_skill_areas(self) -> list[str]:
        """Skill areas behind the most common actions, without duplicates."""
        areas: list[str] = []
        for entry in self.analyze_interaction_patterns()["common_actions"]:
            area = SKILL_AREAS.get(entry["action"])
            if area and area not in areas:
                areas.append(area)
        return areas

    def recommend_next_steps(self) -> list[str]:
        return list(NEXT_STEPS[self.assess_project_maturity()])

    def get_learning_insights(self) -> dict[str, Any]:
        """Everything the memory can tell about the project in one dictionary."""
        return {
            "patterns": self.analyze_interaction_patterns(),
            "preferences": self.get_code_generation_preferences(),
            "suggestions": self.generate_suggestions(),
            "project_maturity": self.assess_project_maturity(),
            "maturity_score": self.maturity_score(),
            "skill_areas": self.identify_skill_areas(),
            "next_steps": self.recommend_next_steps(),
        }


def _aware(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment
