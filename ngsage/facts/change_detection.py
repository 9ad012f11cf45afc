from typing import Iterable, List, Optional

from tree_sitter import Node

from ngsage.analyzers.ast_models import Declaration, DeclarationKind
from ngsage.facts.base import BaseCollector, ExtractionContext, call_target
from ngsage.facts.models import Fact, FactKind

MANUAL_CALLS = {"markForCheck", "detectChanges"}
TIMER_CALLS = {"setInterval", "setTimeout", "requestAnimationFrame", "requestIdleCallback"}
TIMER_HOSTS = {None, "window", "globalThis"}
# libraries that schedule their own frames and events
ZONE_HEAVY_LIBRARIES = (
    "three", "@types/three", "chart.js", "d3", "leaflet", "gsap", "animejs", "pixi.js", "fabric", "paper", "raphael",
)


def zone_heavy_library(imports: List[str]) -> Optional[str]:
    for specifier in imports:
        package = specifier.split("/")[0] if not specifier.startswith("@") else "/".join(specifier.split("/")[:2])
        if package in ZONE_HEAVY_LIBRARIES:
            return specifier
    return None


class ChangeDetectionCollector(BaseCollector):
    """Change detection strategy, manual checks and timers that trigger zone-wide checks."""

    category = "change-detection"
    produces = frozenset({FactKind.DETECTION_STRATEGY, FactKind.MANUAL_CHANGE_DETECTION, FactKind.TIMER_SCHEDULED})

    def collect(self, ctx: ExtractionContext, decl: Declaration) -> Iterable[Fact]:
        facts: List[Fact] = []
        if decl.kind == DeclarationKind.COMPONENT:
            value = decl.metadata.get("changeDetection")
            strategy = value.split(".")[-1].strip() if value else None
            facts.append(self.fact(ctx, FactKind.DETECTION_STRATEGY, decl, decl.range, component=decl.name, strategy=strategy))

        library = zone_heavy_library(ctx.unit.imports)
        for member_name, node in self.code_roots(decl):
            for child in ctx.walk(node):
                if child.type != "call_expression":
                    continue
                receiver, name = call_target(ctx, child)
                if receiver is not None and name in MANUAL_CALLS:
                    facts.append(self.fact(ctx, FactKind.MANUAL_CHANGE_DETECTION, decl, child, member=member_name, call=name))
                elif name in TIMER_CALLS and (ctx.text(receiver) if receiver is not None else None) in TIMER_HOSTS:
                    facts.append(self.fact(
                        ctx, FactKind.TIMER_SCHEDULED, decl, child, member=member_name,
                        call=name, outside_angular=self._outside_angular(ctx, child, node), library=library,
                    ))
        return facts

    def _outside_angular(self, ctx: ExtractionContext, node: Node, root: Node) -> bool:
        ancestor = node.parent
        while ancestor is not None and ancestor != root:
            if ancestor.type == "call_expression" and call_target(ctx, ancestor)[1] == "runOutsideAngular":
                return True
            ancestor = ancestor.parent
        return False
