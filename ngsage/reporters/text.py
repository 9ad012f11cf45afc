from typing import TextIO

import click
from rich.console import Console

from ngsage.cli.formatter import format_table
from ngsage.models.report import AnalysisReport
from .base import BaseReporter


class TextReporter(BaseReporter):
    """One line per diagnostic in compiler style, then a summary."""

    def report(self, report: AnalysisReport, stream: TextIO) -> None:
        for diagnostic in report.diagnostics:
            location = diagnostic.location
            click.echo(
                f"{location.file_path}:{location.line}:{location.column}: "
                f"{diagnostic.severity} [{diagnostic.rule_id}] {diagnostic.message}",
                file=stream,
            )
            if diagnostic.fix:
                click.echo(f"    fix: {diagnostic.fix}", file=stream)

        summary = report.summary
        counts = ", ".join(
            f"{summary.by_severity.get(severity, 0)} {severity}" for severity in ("error", "warning", "info")
        )
        line = f"{summary.total} diagnostic(s) in {report.files_analyzed} file(s) ({counts})"
        if report.cancelled:
            line += " [cancelled]"
        click.echo(line, file=stream)

        if self.details and summary.by_rule:
            rows = []
            for rule_id, count in sorted(summary.by_rule.items()):
                rule = self.catalog.get(rule_id) if self.catalog is not None else None
                rows.append((rule_id, rule.severity if rule else "error", count, rule.definition.title if rule else ""))
            console = Console(file=stream, highlight=False, soft_wrap=True)
            console.print(format_table(rows, ["Rule", "Severity", "Count", "Title"], title="Diagnostics by rule"))
