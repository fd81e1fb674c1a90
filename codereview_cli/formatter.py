"""Render reviews and static-analysis issues as text, JSON or markdown.

Text output carries rich console markup; the CLI prints it through a
:class:`rich.console.Console`. JSON and markdown are plain strings.
"""

from __future__ import annotations

import json
from typing import List, Sequence

from rich.markup import escape

from .models import CodeIssue, Review, ReviewItem

OUTPUT_FORMATS = ("text", "json", "markdown")

_SEVERITY_STYLE = {"high": "red", "medium": "yellow", "low": "bright_black"}


class ReportFormatter:
    """Turn a :class:`Review` into a report string."""

    def format(self, review: Review, fmt: str = "text") -> str:
        if fmt == "json":
            return json.dumps(review.to_dict(), indent=2)
        if fmt == "markdown":
            return self._format_markdown(review)
        return self._format_text(review)

    # ------------------------------------------------------------------
    # Text
    # ------------------------------------------------------------------

    def _format_text(self, review: Review) -> str:
        lines: List[str] = [
            "[bold underline]Code Review Report[/bold underline]",
            "",
            f"[bold]Summary:[/bold] {escape(review.summary)}",
            "",
        ]
        for title, items in _sections(review):
            if not items:
                continue
            lines.append(f"[bold]{title} Issues ({len(items)}):[/bold]")
            lines.extend(_item_text(item, idx) for idx, item in enumerate(items, 1))
            lines.append("")

        if review.positives:
            lines.append("[bold green]Positives:[/bold green]")
            lines.extend(f"  [green]+[/green] {escape(p)}" for p in review.positives)
            lines.append("")
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Markdown
    # ------------------------------------------------------------------

    def _format_markdown(self, review: Review) -> str:
        lines: List[str] = ["# Code Review Report", "", "## Summary", "", review.summary, ""]
        for title, items in _sections(review):
            if not items:
                continue
            lines.extend([f"## {title} Issues", ""])
            for idx, item in enumerate(items, 1):
                lines.extend([f"### {idx}. {item.title} ({item.severity})", ""])
                lines.append(f"- **Line:** {item.line}")
                lines.append(f"- **Snippet:** `{item.snippet}`")
                lines.append(f"- **Explanation:** {item.explanation}")
                lines.append(f"- **Suggestion:** {item.suggestion}")
                if item.example:
                    lines.extend(["", "```typescript", item.example, "```"])
                lines.append("")

        if review.positives:
            lines.extend(["## Positives", ""])
            lines.extend(f"- {p}" for p in review.positives)
            lines.append("")
        return "\n".join(lines)


def _sections(review: Review):
    return (
        ("Performance", review.performance_issues),
        ("Readability", review.readability_issues),
        ("Maintainability", review.maintainability_issues),
    )


def _severity_tag(severity: str) -> str:
    style = _SEVERITY_STYLE.get(severity, "white")
    return f"[{style}]\\[{severity}][/{style}]"


def _item_text(item: ReviewItem, index: int) -> str:
    lines = [
        f"  {index}. {_severity_tag(item.severity)} [bold]{escape(item.title)}[/bold]",
        f"     Line {item.line}: [dim]{escape(item.snippet)}[/dim]",
        f"     {escape(item.explanation)}",
        f"     [cyan]Suggestion:[/cyan] {escape(item.suggestion)}",
    ]
    if item.example:
        lines.append(f"     [dim]Example:[/dim] {escape(item.example)}")
    return "\n".join(lines)


def format_issues(issues: Sequence[CodeIssue], fmt: str = "text") -> str:
    """Render static-analysis issues (used when no review is requested)."""
    if fmt == "json":
        return json.dumps([i.to_dict() for i in issues], indent=2)
    if fmt == "markdown":
        if not issues:
            return "No issues detected."
        lines = ["# Static Analysis", ""]
        for i in issues:
            where = f"{i.location.file}:{i.location.line}"
            lines.append(f"- **{i.title}** ({i.kind}, {i.severity}) at `{where}`: {i.description}")
        return "\n".join(lines)

    if not issues:
        return "[green]No issues detected.[/green]"
    lines = []
    for i in issues:
        fn = f" in {escape(i.location.function_name)}" if i.location.function_name else ""
        lines.append(
            f"{_severity_tag(i.severity)} [bold]{escape(i.title)}[/bold] "
            f"({i.kind}) {escape(i.location.file)}:{i.location.line}{fn}"
        )
        lines.append(f"    {escape(i.description)}")
        if i.suggested_fix:
            lines.append(f"    [cyan]Fix:[/cyan] {escape(i.suggested_fix)}")
    return "\n".join(lines)


def time_ago(seconds: float) -> str:
    if seconds < 60:
        return "just now"
    if seconds < 3600:
        return f"{int(seconds // 60)}m ago"
    if seconds < 86400:
        return f"{int(seconds // 3600)}h ago"
    return f"{int(seconds // 86400)}d ago"


def format_size(num_bytes: int) -> str:
    size = float(num_bytes)
    for unit in ("B", "KB", "MB"):
        if size < 1024:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"
