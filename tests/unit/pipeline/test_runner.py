from pathlib import Path

import pytest

from ngsage.facts.base import BaseCollector
from ngsage.facts.extractor import FactExtractor, default_collectors
from ngsage.pipeline.runner import AnalysisRunner

VALID = """
export class Holder{n} {{
  data: any;
}}
"""

MALFORMED = """
export class Broken {
  method( {
"""


@pytest.fixture
def project(tmp_path: Path):
    src = tmp_path / "src"
    src.mkdir()
    for n in range(9):
        (src / f"holder{n}.ts").write_text(VALID.format(n=n))
    (src / "broken.ts").write_text(MALFORMED)
    return tmp_path


def test_malformed_unit_does_not_stop_the_run(project, catalog, extractor):
    report = AnalysisRunner(catalog, extractor).run([str(project)])

    assert report.files_analyzed == 10
    malformed = [d for d in report.diagnostics if d.rule_id == "malformed-source"]
    assert len(malformed) == 1
    assert malformed[0].location.file_path.endswith("broken.ts")
    assert malformed[0].severity == "error"
    flagged = {Path(d.location.file_path).name for d in report.diagnostics if d.rule_id == "typescript-any"}
    assert flagged == {f"holder{n}.ts" for n in range(9)}


def test_diagnostics_are_sorted_and_independent_of_worker_count(project, catalog, extractor):
    serial = AnalysisRunner(catalog, extractor, max_workers=1).run([str(project)])
    parallel = AnalysisRunner(catalog, extractor, max_workers=8).run([str(project)])

    assert serial.diagnostics == parallel.diagnostics
    keys = [(d.location.file_path, d.location.offset) for d in serial.diagnostics]
    assert keys == sorted(keys)


def test_empty_input(tmp_path, catalog, extractor):
    report = AnalysisRunner(catalog, extractor).run([str(tmp_path)])
    assert report.files_analyzed == 0
    assert report.diagnostics == []
    assert report.summary.total == 0
    assert not report.cancelled


def test_missing_path_becomes_io_error(project, catalog, extractor):
    missing = str(project / "missing")
    report = AnalysisRunner(catalog, extractor).run([missing, str(project / "src" / "holder0.ts")])

    assert report.files_analyzed == 1
    io_errors = [d for d in report.diagnostics if d.rule_id == "io-error"]
    assert [d.location.file_path for d in io_errors] == [missing]


def test_cancelled_run_reports_partial_results(project, catalog, extractor):
    runner = AnalysisRunner(catalog, extractor)
    runner.cancel()
    report = runner.run([str(project)])

    assert report.cancelled
    assert report.files_analyzed == 0
    assert report.diagnostics == []


def test_report_metadata(project, catalog, extractor):
    report = AnalysisRunner(catalog, extractor).run([str(project)])
    assert report.metadata.paths == [str(project)]
    assert report.metadata.rule_count == len(catalog)


class ExplodingCollector(BaseCollector):
    category = "exploding"

    def collect(self, ctx, decl):
        if ctx.unit.path.endswith("boom.ts"):
            raise RuntimeError("collector bug")
        return []


def test_unit_failure_is_isolated(tmp_path, catalog):
    (tmp_path / "ok.ts").write_text(VALID.format(n=0))
    (tmp_path / "boom.ts").write_text(VALID.format(n=1))
    extractor = FactExtractor(default_collectors() + [ExplodingCollector()])

    report = AnalysisRunner(catalog, extractor).run([str(tmp_path)])

    assert report.files_analyzed == 2
    [fault] = [d for d in report.diagnostics if d.rule_id == "engine-fault"]
    assert fault.location.file_path.endswith("boom.ts")
    assert fault.severity == "error"
    assert "RuntimeError: collector bug" in fault.message
    flagged = {Path(d.location.file_path).name for d in report.diagnostics if d.rule_id == "typescript-any"}
    assert flagged == {"ok.ts"}
