import json
from typing import TextIO

from ngsage.models.report import AnalysisReport
from .base import BaseReporter


class JsonReporter(BaseReporter):
    """
    Writes the diagnostics and summary as one JSON document.

    Keys are sorted and the run timestamp is left out, so the same
    diagnostics always produce the same bytes.
    """

    def report(self, report: AnalysisReport, stream: TextIO) -> None:
        document = {
            "tool_version": report.metadata.tool_version,
            "files_analyzed": report.files_analyzed,
            "cancelled": report.cancelled,
            "diagnostics": [d.model_dump(mode="json") for d in report.diagnostics],
            "summary": report.summary.model_dump(mode="json"),
        }
        stream.write(json.dumps(document, indent=2, sort_keys=True))
        stream.write("\n")
