from datetime import datetime
from typing import Dict, List

from pydantic import BaseModel, Field

from ngsage.models.diagnostic import SEVERITY_ORDER, Diagnostic


class ReportMetadata(BaseModel):
    tool_version: str = Field(..., description="The version of ngsage that produced the report.")
    timestamp: datetime = Field(..., description="When the run finished.")
    paths: List[str] = Field(default_factory=list, description="The paths given to the run.")
    rule_count: int = Field(0, description="How many catalog rules were evaluated.")


class DiagnosticSummary(BaseModel):
    total: int = Field(0, description="The total number of diagnostics.")
    by_severity: Dict[str, int] = Field(default_factory=dict, description="Diagnostics grouped by severity.")
    by_rule: Dict[str, int] = Field(default_factory=dict, description="Diagnostics grouped by rule ID.")


class AnalysisReport(BaseModel):
    metadata: ReportMetadata
    files_analyzed: int = 0
    diagnostics: List[Diagnostic] = Field(default_factory=list)
    summary: DiagnosticSummary = Field(default_factory=DiagnosticSummary)
    cancelled: bool = False

    def filtered(self, severity_min: str) -> "AnalysisReport":
        """Returns a copy keeping only diagnostics at or above `severity_min`."""
        threshold = SEVERITY_ORDER[severity_min]
        kept = [d for d in self.diagnostics if SEVERITY_ORDER[d.severity] >= threshold]
        return self.model_copy(update={"diagnostics": kept, "summary": summarize(kept)})


def summarize(diagnostics: List[Diagnostic]) -> DiagnosticSummary:
    by_severity: Dict[str, int] = {}
    by_rule: Dict[str, int] = {}
    for diagnostic in diagnostics:
        by_severity[diagnostic.severity] = by_severity.get(diagnostic.severity, 0) + 1
        by_rule[diagnostic.rule_id] = by_rule.get(diagnostic.rule_id, 0) + 1
    return DiagnosticSummary(total=len(diagnostics), by_severity=by_severity, by_rule=by_rule)
