from abc import ABC, abstractmethod
from typing import Optional, TextIO

from ngsage.models.report import AnalysisReport
from ngsage.rules.catalog import RuleCatalog


class BaseReporter(ABC):
    def __init__(self, catalog: Optional[RuleCatalog] = None, details: bool = False):
        self.catalog = catalog
        self.details = details

    @abstractmethod
    def report(self, report: AnalysisReport, stream: TextIO) -> None:
        """
        Render the report to a text stream.

        Args:
            report: The finished analysis, with diagnostics already filtered and sorted.
            stream: Where to write. Nothing else is touched.
        """
        pass
