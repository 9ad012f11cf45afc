import re
import time
from typing import List, Sequence

import structlog

from ngsage.analyzers.ast_models import SourceRange, SourceUnit
from ngsage.errors import EngineFault, MalformedSource, SourceIOError
from ngsage.facts.models import Fact
from ngsage.models.diagnostic import (
    ENGINE_FAULT,
    IO_ERROR,
    MALFORMED_SOURCE,
    Diagnostic,
    DiagnosticLocation,
)
from ngsage.rules.catalog import Rule, RuleCatalog
from ngsage.rules.matchers import FactIndex

logger = structlog.get_logger()

PLACEHOLDER = re.compile(r"\{([A-Za-z_][\w.]*)\}")


def render_message(template: str, fact: Fact) -> str:
    def substitute(match):
        value = fact.get(match.group(1))
        return "?" if value is None else str(value)
    return PLACEHOLDER.sub(substitute, template)


def location_of(path: str, where: SourceRange) -> DiagnosticLocation:
    return DiagnosticLocation(
        file_path=path,
        line=where.line,
        column=where.column,
        end_line=where.end_line,
        end_column=where.end_column,
        offset=where.start,
    )


def malformed_source_diagnostic(error: MalformedSource) -> Diagnostic:
    return Diagnostic(
        rule_id=MALFORMED_SOURCE,
        severity="error",
        message=f"Could not parse file: {error.detail}",
        location=DiagnosticLocation(file_path=error.path, line=error.line, column=error.column),
    )


def io_error_diagnostic(error: SourceIOError) -> Diagnostic:
    return Diagnostic(
        rule_id=IO_ERROR,
        severity="error",
        message=f"Could not read path: {error.reason}",
        location=DiagnosticLocation(file_path=error.path),
    )


def unit_fault_diagnostic(path: str, error: Exception) -> Diagnostic:
    return Diagnostic(
        rule_id=ENGINE_FAULT,
        severity="error",
        message=f"Analysis failed: {type(error).__name__}: {error}",
        location=DiagnosticLocation(file_path=path),
    )


def engine_fault_diagnostic(error: EngineFault) -> Diagnostic:
    return Diagnostic(
        rule_id=ENGINE_FAULT,
        severity="error",
        message=f"Rule '{error.rule_id}' failed: {type(error.cause).__name__}: {error.cause}",
        location=DiagnosticLocation(file_path=error.path),
    )


class RuleEngine:
    """Evaluates every catalog rule against the facts of one unit."""

    def __init__(self, catalog: RuleCatalog) -> None:
        self.catalog = catalog

    def evaluate(self, unit: SourceUnit, facts: Sequence[Fact]) -> List[Diagnostic]:
        """
        Returns the unit's diagnostics, grouped by rule in catalog order.

        A rule whose matcher raises yields one engine-fault diagnostic instead
        of its findings; the remaining rules still run.
        """
        started = time.perf_counter()
        index = FactIndex(facts)
        diagnostics: List[Diagnostic] = []
        for rule in self.catalog:
            try:
                diagnostics.extend(self._evaluate_rule(rule, unit, index))
            except Exception as e:
                fault = EngineFault(rule.id, unit.path, e)
                logger.warning("Rule evaluation failed", rule_id=rule.id, path=unit.path, error=str(e))
                diagnostics.append(engine_fault_diagnostic(fault))

        logger.debug(
            "Rules evaluated",
            path=unit.path,
            rules=len(self.catalog),
            diagnostics=len(diagnostics),
            elapsed_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return diagnostics

    def _evaluate_rule(self, rule: Rule, unit: SourceUnit, index: FactIndex) -> List[Diagnostic]:
        definition = rule.definition
        seen = set()
        found = []
        for match in rule.match(index):
            anchor = match.anchor
            message = render_message(definition.message, anchor)
            key = (anchor.range.start, anchor.range.end, message)
            if key in seen:
                continue
            seen.add(key)
            found.append(Diagnostic(
                rule_id=definition.id,
                severity=definition.severity,
                message=message,
                location=location_of(unit.path, anchor.range),
                category=definition.category,
                fix=definition.fix_hint,
            ))
        found.sort(key=lambda d: d.location.offset)
        return found
