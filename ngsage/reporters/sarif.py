import json
from typing import Any, Dict, List, TextIO

from ngsage.models.report import AnalysisReport
from .base import BaseReporter

SARIF_VERSION = "2.1.0"
SARIF_SCHEMA = "https://json.schemastore.org/sarif-2.1.0.json"
LEVELS = {"error": "error", "warning": "warning", "info": "note"}


class SarifReporter(BaseReporter):
    """Writes a SARIF 2.1.0 log for code-scanning integrations."""

    def report(self, report: AnalysisReport, stream: TextIO) -> None:
        log = {
            "$schema": SARIF_SCHEMA,
            "version": SARIF_VERSION,
            "runs": [{
                "tool": {
                    "driver": {
                        "name": "ngsage",
                        "version": report.metadata.tool_version,
                        "rules": self._rules(),
                    }
                },
                "results": [self._result(d) for d in report.diagnostics],
                "properties": {"cancelled": report.cancelled, "filesAnalyzed": report.files_analyzed},
            }],
        }
        stream.write(json.dumps(log, indent=2, sort_keys=True))
        stream.write("\n")

    def _rules(self) -> List[Dict[str, Any]]:
        if self.catalog is None:
            return []
        rules = []
        for rule in self.catalog:
            definition = rule.definition
            entry = {
                "id": definition.id,
                "name": definition.title,
                "shortDescription": {"text": definition.title},
                "fullDescription": {"text": definition.rationale.strip() or definition.title},
                "defaultConfiguration": {"level": LEVELS[definition.severity]},
                "properties": {"category": definition.category},
            }
            if definition.fix_hint:
                entry["help"] = {"text": definition.fix_hint}
            rules.append(entry)
        return rules

    def _result(self, diagnostic) -> Dict[str, Any]:
        location = diagnostic.location
        region = {"startLine": location.line, "startColumn": location.column}
        if location.end_line is not None:
            region["endLine"] = location.end_line
        if location.end_column is not None:
            region["endColumn"] = location.end_column
        return {
            "ruleId": diagnostic.rule_id,
            "level": LEVELS[diagnostic.severity],
            "message": {"text": diagnostic.message},
            "locations": [{
                "physicalLocation": {
                    "artifactLocation": {"uri": location.file_path.replace("\\", "/")},
                    "region": region,
                }
            }],
        }
