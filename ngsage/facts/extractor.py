import time
from typing import FrozenSet, List, Optional, Sequence

import structlog

from ngsage.analyzers.ast_models import SourceUnit
from ngsage.errors import MalformedSource
from ngsage.facts.base import BaseCollector, ExtractionContext
from ngsage.facts.change_detection import ChangeDetectionCollector
from ngsage.facts.declarations import DeclarationCollector
from ngsage.facts.models import Fact, FactKind
from ngsage.facts.reactive import ReactiveCollector
from ngsage.facts.state import StateCollector
from ngsage.facts.streams import StreamCollector
from ngsage.facts.subscriptions import SubscriptionCollector
from ngsage.facts.templates import TemplateCollector
from ngsage.facts.typescript import TypeScriptCollector

logger = structlog.get_logger()


def default_collectors() -> List[BaseCollector]:
    return [
        DeclarationCollector(),
        ReactiveCollector(),
        SubscriptionCollector(),
        TemplateCollector(),
        StateCollector(),
        StreamCollector(),
        ChangeDetectionCollector(),
        TypeScriptCollector(),
    ]


class FactExtractor:
    """
    Turns a SourceUnit into the finite set of facts the rules match against.

    Collectors hold no per-unit state, so one extractor can be shared by
    worker threads. For a given unit the output is identical on every call:
    declarations are visited in source order and collectors in a fixed order.
    """

    def __init__(self, collectors: Optional[Sequence[BaseCollector]] = None):
        self.collectors = list(collectors) if collectors is not None else default_collectors()

    @property
    def produced_kinds(self) -> FrozenSet[FactKind]:
        kinds = set()
        for collector in self.collectors:
            kinds.update(collector.produces)
        return frozenset(kinds)

    def extract(self, unit: SourceUnit) -> List[Fact]:
        if unit.tree is None:
            raise MalformedSource(unit.path, detail="no syntax tree")
        if unit.tree.root_node.has_error:
            raise MalformedSource(unit.path, detail="syntax tree contains errors")

        started = time.perf_counter()
        ctx = ExtractionContext(unit)
        facts: List[Fact] = []
        for decl in unit.declarations:
            for collector in self.collectors:
                facts.extend(collector.collect(ctx, decl))

        logger.debug(
            "Facts extracted",
            path=unit.path,
            declarations=len(unit.declarations),
            facts=len(facts),
            elapsed_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return facts
