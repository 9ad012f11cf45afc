from datetime import datetime

import pytest
from pydantic import ValidationError

from ngsage.models.diagnostic import Diagnostic, DiagnosticLocation, severity_at_least
from ngsage.models.report import AnalysisReport, ReportMetadata, summarize


def diagnostic(rule_id, severity, line=1):
    return Diagnostic(
        rule_id=rule_id,
        severity=severity,
        message=f"{rule_id} found",
        location=DiagnosticLocation(file_path="src/app.component.ts", line=line, column=5),
    )


def test_diagnostic_id_is_derived_from_location():
    assert diagnostic("missing-trackby", "warning", line=12).id == "missing-trackby:src/app.component.ts:12:5"


def test_diagnostic_is_immutable():
    item = diagnostic("missing-trackby", "warning")
    with pytest.raises(ValidationError):
        item.message = "changed"


def test_unknown_severity_is_rejected():
    with pytest.raises(ValidationError):
        diagnostic("missing-trackby", "fatal")


def test_severity_at_least():
    assert severity_at_least("error", "warning")
    assert severity_at_least("warning", "warning")
    assert not severity_at_least("info", "warning")


def test_summarize():
    summary = summarize([diagnostic("a", "warning"), diagnostic("a", "error", 2), diagnostic("b", "warning", 3)])
    assert summary.total == 3
    assert summary.by_severity == {"warning": 2, "error": 1}
    assert summary.by_rule == {"a": 2, "b": 1}


def test_filtered_report_is_resummarized():
    items = [diagnostic("a", "info"), diagnostic("b", "warning", 2), diagnostic("c", "error", 3)]
    report = AnalysisReport(
        metadata=ReportMetadata(tool_version="0.1.0", timestamp=datetime(2024, 1, 1)),
        files_analyzed=1,
        diagnostics=items,
        summary=summarize(items),
    )
    filtered = report.filtered("warning")
    assert [d.rule_id for d in filtered.diagnostics] == ["b", "c"]
    assert filtered.summary.total == 2
    assert report.summary.total == 3
