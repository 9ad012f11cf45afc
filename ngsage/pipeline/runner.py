import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence

import structlog

from ngsage import __version__
from ngsage.analyzers.parser_factory import classify_file, create_parser
from ngsage.errors import AnalysisCancelled, MalformedSource, SourceIOError
from ngsage.facts.extractor import FactExtractor
from ngsage.models.diagnostic import Diagnostic
from ngsage.models.report import AnalysisReport, ReportMetadata, summarize
from ngsage.pipeline.scanner import discover
from ngsage.rules.catalog import RuleCatalog
from ngsage.rules.engine import RuleEngine, io_error_diagnostic, malformed_source_diagnostic, unit_fault_diagnostic

logger = structlog.get_logger()


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


class AnalysisRunner:
    """
    Runs discovery, parsing, fact extraction and rule evaluation over a set of paths.

    Units are independent, so each one is processed by a worker thread and
    returns its own diagnostic list; the main thread joins and sorts them.
    Cancellation is cooperative: workers check a shared event before each
    phase and a cancelled unit contributes nothing to the report.
    """

    def __init__(
        self,
        catalog: RuleCatalog,
        extractor: Optional[FactExtractor] = None,
        max_workers: int = 4,
        timeout: Optional[float] = None,
    ):
        self.catalog = catalog
        self.extractor = extractor or FactExtractor()
        self.engine = RuleEngine(catalog)
        self.max_workers = max_workers
        self.timeout = timeout
        self._cancelled = threading.Event()
        self._rule_order = {rule_id: i for i, rule_id in enumerate(catalog.ids)}

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Asks workers to stop at their next checkpoint."""
        self._cancelled.set()

    def _checkpoint(self, path: str) -> None:
        if self._cancelled.is_set():
            raise AnalysisCancelled(path)

    def run(self, paths: Sequence[str], exclude: Optional[List[str]] = None, include_tests: bool = False) -> AnalysisReport:
        started = time.perf_counter()
        files, io_errors = discover(paths, exclude, include_tests)
        logger.debug("Discovery finished", files=len(files), missing=len(io_errors), elapsed_ms=_elapsed_ms(started))
        for error in io_errors:
            logger.warning("Path skipped", path=error.path, reason=error.reason)

        diagnostics: List[Diagnostic] = [io_error_diagnostic(error) for error in io_errors]
        results = self._analyze_all(files)
        files_analyzed = 0
        for unit_diagnostics in results:
            if unit_diagnostics is not None:
                files_analyzed += 1
                diagnostics.extend(unit_diagnostics)

        diagnostics.sort(key=self._sort_key)
        if self.cancelled:
            logger.warning("Analysis cancelled", completed=files_analyzed, total=len(files))
        logger.debug("Analysis finished", files=files_analyzed, diagnostics=len(diagnostics), elapsed_ms=_elapsed_ms(started))

        return AnalysisReport(
            metadata=ReportMetadata(
                tool_version=__version__,
                timestamp=datetime.now(timezone.utc),
                paths=list(paths),
                rule_count=len(self.catalog),
            ),
            files_analyzed=files_analyzed,
            diagnostics=diagnostics,
            summary=summarize(diagnostics),
            cancelled=self.cancelled,
        )

    def _analyze_all(self, files: List[Path]) -> List[Optional[List[Diagnostic]]]:
        if not files:
            return []
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [executor.submit(self.analyze_file, path) for path in files]
            _, pending = wait(futures, timeout=self.timeout)
            if pending:
                logger.warning("Analysis timed out", timeout=self.timeout, pending=len(pending))
                self.cancel()
                for future in pending:
                    future.cancel()
            # results are collected in discovery order
            return [None if future.cancelled() else future.result() for future in futures]

    def analyze_file(self, path: Path) -> Optional[List[Diagnostic]]:
        """
        Analyzes one unit.

        Returns the unit's diagnostics, or None if the run was cancelled before
        the unit finished.
        """
        display_path = str(path)
        try:
            self._checkpoint(display_path)
            started = time.perf_counter()
            try:
                text = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                error = SourceIOError(display_path, str(e))
                logger.warning("Path skipped", path=display_path, reason=error.reason)
                return [io_error_diagnostic(error)]

            try:
                parser = create_parser("typescript")
                unit = parser.build_unit(display_path, text, classify_file(display_path, text))
                logger.debug("Parsed", path=display_path, declarations=len(unit.declarations), elapsed_ms=_elapsed_ms(started))
                self._checkpoint(display_path)
                facts = self.extractor.extract(unit)
                self._checkpoint(display_path)
                return self.engine.evaluate(unit, facts)
            except MalformedSource as e:
                logger.warning("Malformed source", path=display_path, line=e.line, column=e.column, detail=e.detail)
                return [malformed_source_diagnostic(e)]
            except AnalysisCancelled:
                raise
            except Exception as e:
                # a failure inside one unit is reported against that unit only
                logger.warning("Unit analysis failed", path=display_path, error=str(e), error_type=type(e).__name__)
                return [unit_fault_diagnostic(display_path, e)]
        except AnalysisCancelled:
            return None

    def _sort_key(self, diagnostic: Diagnostic):
        return (
            diagnostic.location.file_path,
            diagnostic.location.offset,
            self._rule_order.get(diagnostic.rule_id, -1),
        )
