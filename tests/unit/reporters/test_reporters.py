import io
import json
from datetime import datetime

import pytest

from ngsage.models.diagnostic import Diagnostic, DiagnosticLocation
from ngsage.models.report import AnalysisReport, ReportMetadata, summarize
from ngsage.reporters import JsonReporter, SarifReporter, TextReporter, create_reporter


@pytest.fixture
def report():
    diagnostics = [
        Diagnostic(
            rule_id="missing-trackby",
            severity="warning",
            message="*ngFor over 'items' has no trackBy function",
            location=DiagnosticLocation(file_path="src/list.component.ts", line=8, column=11, end_line=8, end_column=40),
            category="Performance",
            fix="Add a trackBy function.",
        ),
        Diagnostic(
            rule_id="typescript-any",
            severity="info",
            message="Explicit 'any' used as annotation",
            location=DiagnosticLocation(file_path="src/list.component.ts", line=14, column=9),
            category="TypeScript",
        ),
    ]
    return AnalysisReport(
        metadata=ReportMetadata(tool_version="0.1.0", timestamp=datetime(2024, 5, 1, 12, 0)),
        files_analyzed=3,
        diagnostics=diagnostics,
        summary=summarize(diagnostics),
    )


def render(reporter, report):
    stream = io.StringIO()
    reporter.report(report, stream)
    return stream.getvalue()


def test_create_reporter():
    assert isinstance(create_reporter("json"), JsonReporter)
    with pytest.raises(ValueError):
        create_reporter("xml")


def test_text_reporter(report):
    output = render(TextReporter(), report)
    lines = output.splitlines()
    assert lines[0] == (
        "src/list.component.ts:8:11: warning [missing-trackby] *ngFor over 'items' has no trackBy function"
    )
    assert lines[1] == "    fix: Add a trackBy function."
    assert lines[-1] == "2 diagnostic(s) in 3 file(s) (0 error, 1 warning, 1 info)"


def test_text_reporter_details(report, catalog):
    output = render(TextReporter(catalog=catalog, details=True), report)
    assert "Diagnostics by rule" in output
    assert "Explicit any" in output


def test_text_reporter_marks_cancelled_runs(report):
    cancelled = report.model_copy(update={"cancelled": True})
    assert render(TextReporter(), cancelled).rstrip().endswith("[cancelled]")


def test_json_reporter(report):
    output = render(JsonReporter(), report)
    document = json.loads(output)
    assert document["files_analyzed"] == 3
    assert document["summary"]["by_rule"] == {"missing-trackby": 1, "typescript-any": 1}
    assert document["diagnostics"][0]["location"]["line"] == 8
    assert "timestamp" not in output


def test_json_reporter_is_idempotent(report):
    later = report.model_copy(update={"metadata": report.metadata.model_copy(update={"timestamp": datetime.now()})})
    assert render(JsonReporter(), report) == render(JsonReporter(), later)


def test_sarif_reporter(report, catalog):
    log = json.loads(render(SarifReporter(catalog=catalog), report))
    assert log["version"] == "2.1.0"
    run = log["runs"][0]
    assert len(run["tool"]["driver"]["rules"]) == len(catalog)
    results = run["results"]
    assert [r["level"] for r in results] == ["warning", "note"]
    region = results[0]["locations"][0]["physicalLocation"]["region"]
    assert region == {"startLine": 8, "startColumn": 11, "endLine": 8, "endColumn": 40}
    assert "endLine" not in results[1]["locations"][0]["physicalLocation"]["region"]
