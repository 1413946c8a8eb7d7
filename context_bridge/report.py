"""
Markdown reports for scan results.

Provides Jinja2-based templating with built-in templates and support for
custom user templates that override them by name.
"""

from __future__ import annotations

import logging
from collections import Counter
from pathlib import Path
from typing import TYPE_CHECKING

from jinja2 import ChoiceLoader, DictLoader, Environment, FileSystemLoader, TemplateNotFound

if TYPE_CHECKING:
    from typing import Any

    from context_bridge.models import ContinuityIssue, Issue

logger = logging.getLogger(__name__)


SEVERITY_ORDER = {"error": 0, "warning": 1, "info": 2}

DEFAULT_TEMPLATES = {
    "security.md.j2": """## Security

{% if not issues -%}
No security issues found.
{% else -%}
**{{ issues | length }}** issue(s): {{ counts.error or 0 }} error(s), {{ counts.warning or 0 }} warning(s), {{ counts.info or 0 }} info.

| Severity | Rule | Location | Message |
|----------|------|----------|---------|
{% for issue in issues -%}
| {{ issue.severity }} | `{{ issue.rule }}` | `{{ issue.file }}{% if issue.line %}:{{ issue.line }}{% endif %}` | {{ issue.message | md_cell }} |
{% endfor %}
{% for rule, suggestion in suggestions.items() %}
{% if loop.first %}### Suggestions

{% endif -%}
- `{{ rule }}`: {{ suggestion }}
{% endfor %}
{%- endif %}
""",

    "continuity.md.j2": """## Continuity

{% if not issues -%}
Frontend and backend are consistent with the project context.
{% else -%}
{% for type, group in groups.items() %}
### {{ type }} ({{ group | length }})

| Frontend | Backend | Suggestion |
|----------|---------|------------|
{% for issue in group -%}
| {{ issue.frontend | md_cell }} | {{ issue.backend | md_cell }} | {{ issue.suggestion | md_cell }} |
{% endfor %}
{% endfor %}
{%- endif %}
""",

    "report.md.j2": """# {{ project.name or 'Project' }} context report

{% if project.description %}{{ project.description }}

{% endif -%}
**Type:** {{ project.type or 'unknown' }}
{% if framework %}**Framework:** {{ framework }}
{% endif %}
{% if insights -%}
**Maturity:** {{ insights.project_maturity }} ({{ insights.maturity_score }}/100)

{% endif -%}
{% if security is not none %}{% include "security.md.j2" with context %}{% endif %}
{% if continuity is not none %}{% with issues = continuity, groups = continuity_groups %}{% include "continuity.md.j2" %}{% endwith %}{% endif %}
{% if insights and insights.suggestions -%}
## Suggestions

{% for suggestion in insights.suggestions -%}
- {{ suggestion }}
{% endfor %}
{% endif -%}
{% if insights and insights.next_steps -%}
## Next steps

{% for step in insights.next_steps -%}
{{ loop.index }}. {{ step }}
{% endfor %}
{% endif -%}
""",
}


def _md_cell(value: Any) -> str:
    """Make a value safe inside a Markdown table cell."""
    return str(value).replace("|", "\\|").replace("\n", " ")


class ReportRenderer:
    """
    Render Markdown reports.

    Templates in ``custom_template_dir`` win over the built-in ones with the
    same name.
    """

    def __init__(self, custom_template_dir: Path | None = None) -> None:
        """
        Initialize the renderer.

        Args:
            custom_template_dir: Optional directory with custom templates.
        """
        self.custom_dir = custom_template_dir

        loaders = []
        if custom_template_dir and custom_template_dir.exists():
            loaders.append(FileSystemLoader(str(custom_template_dir)))
        elif custom_template_dir:
            logger.warning("Template directory %s does not exist, using built-in templates", custom_template_dir)
        loaders.append(DictLoader(DEFAULT_TEMPLATES))

        self.env = Environment(loader=ChoiceLoader(loaders), keep_trailing_newline=True)
        self.env.filters["md_cell"] = _md_cell

    def render(self, template_name: str, **context: Any) -> str:
        """
        Render a template with context.

        Args:
            template_name: Name of the template (e.g., "security.md.j2").
            **context: Template context variables.

        Returns:
            Rendered template string.
        """
        template = self.env.get_template(template_name)
        return template.render(**context)

    def has_template(self, template_name: str) -> bool:
        """Check if a template exists."""
        try:
            self.env.get_template(template_name)
            return True
        except TemplateNotFound:
            return False

    def render_security(self, issues: list[Issue]) -> str:
        return self.render("security.md.j2", **_security_vars(issues))

    def render_continuity(self, issues: list[ContinuityIssue]) -> str:
        return self.render("continuity.md.j2", issues=issues, groups=_group_by_type(issues))

    def render_report(
        self,
        context: dict[str, Any],
        security: list[Issue] | None = None,
        continuity: list[ContinuityIssue] | None = None,
        insights: dict[str, Any] | None = None,
    ) -> str:
        """
        Render the full project report.

        Args:
            context: Project context.
            security: Security issues, or None to leave the section out.
            continuity: Continuity issues, or None to leave the section out.
            insights: Output of ``ContextMemory.get_learning_insights``.

        Returns:
            Markdown document.
        """
        project = context.get("project") or {}
        framework = ", ".join(
            f"{key}: {value}" for key, value in (project.get("framework") or {}).items() if value
        )
        variables: dict[str, Any] = {
            "project": project,
            "framework": framework,
            "insights": insights,
            "security": security,
            "continuity": continuity,
            "continuity_groups": _group_by_type(continuity or []),
        }
        if security is not None:
            variables.update(_security_vars(security))
        return self.render("report.md.j2", **variables)


def _security_vars(issues: list[Issue]) -> dict[str, Any]:
    ordered = sorted(issues, key=lambda i: (SEVERITY_ORDER.get(i.severity, 3), i.file, i.line or 0))
    suggestions: dict[str, str] = {}
    for issue in ordered:
        suggestions.setdefault(issue.rule, issue.suggestion)
    return {
        "issues": ordered,
        "counts": Counter(i.severity for i in issues),
        "suggestions": suggestions,
    }


def _group_by_type(issues: list[ContinuityIssue]) -> dict[str, list[ContinuityIssue]]:
    groups: dict[str, list[ContinuityIssue]] = {}
    for issue in issues:
        groups.setdefault(issue.type, []).append(issue)
    return groups


def create_template_dir(output_dir: Path) -> None:
    """
    Write the built-in templates to a directory.

    Useful for users who want to customize templates.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    for template_name, content in DEFAULT_TEMPLATES.items():
        template_path = output_dir / template_name
        with open(template_path, "w", encoding="utf-8") as f:
            f.write(content)
