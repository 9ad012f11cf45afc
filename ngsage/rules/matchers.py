"""
Compiles declarative matcher specs into predicate combinators.

A compiled matcher is a pure function from a `FactIndex` to the list of
`Match`es it finds. Nothing here touches I/O or mutates facts, so compiled
matchers can be shared by every worker for the lifetime of the catalog.
"""
from collections import defaultdict
from typing import Any, Callable, Dict, Iterable, List, NamedTuple, Sequence, Tuple

from ngsage.errors import CatalogLoadError
from ngsage.facts.models import Fact, FactKind
from ngsage.rules.models import Condition, ConditionGroup, Correlation, MatcherSpec, Predicate


class Match(NamedTuple):
    anchor: Fact
    related: Tuple[Fact, ...] = ()


FactPredicate = Callable[[Fact], bool]
Matcher = Callable[["FactIndex"], List[Match]]


class FactIndex:
    """Facts of one unit grouped by kind, in extraction order."""

    def __init__(self, facts: Iterable[Fact]):
        self._by_kind: Dict[FactKind, List[Fact]] = defaultdict(list)
        for fact in facts:
            self._by_kind[fact.kind].append(fact)

    def of(self, kind: FactKind) -> List[Fact]:
        return self._by_kind.get(kind, [])


def _match_condition(value: Any, op: str, expected: Any) -> bool:
    if op == "exists":
        return (value is not None) == bool(expected)
    # a missing value never satisfies a comparison
    if value is None:
        return False
    if op == "==":
        return value == expected
    if op == "!=":
        return value != expected
    if op == ">":
        return value > expected
    if op == "<":
        return value < expected
    if op == ">=":
        return value >= expected
    if op == "<=":
        return value <= expected
    if op == "in":
        return value in expected
    if op == "not in":
        return value not in expected
    return False


def resolve_value(value: Any, options: Dict[str, Any]) -> Any:
    if isinstance(value, dict) and set(value) == {"option"}:
        name = value["option"]
        if name not in options:
            raise CatalogLoadError(f"Matcher references undefined option '{name}'.")
        return options[name]
    return value


def compile_predicate(predicate: Predicate, options: Dict[str, Any]) -> FactPredicate:
    if isinstance(predicate, Condition):
        field, op = predicate.field, predicate.op
        expected = resolve_value(predicate.value, options)
        return lambda fact: _match_condition(fact.get(field), op, expected)

    if isinstance(predicate, ConditionGroup):
        if predicate.any_ is not None:
            parts = [compile_predicate(p, options) for p in predicate.any_]
            return lambda fact: any(part(fact) for part in parts)
        if predicate.all_ is not None:
            return compile_all(predicate.all_, options)
        inner = compile_predicate(predicate.not_, options)
        return lambda fact: not inner(fact)

    raise CatalogLoadError(f"Unsupported predicate: {predicate!r}")


def compile_all(predicates: Sequence[Predicate], options: Dict[str, Any]) -> FactPredicate:
    parts = [compile_predicate(p, options) for p in predicates]
    return lambda fact: all(part(fact) for part in parts)


def each(kind: FactKind, where: FactPredicate) -> Matcher:
    """Anchors a match on every fact of `kind` satisfying `where`."""
    def run(index: FactIndex) -> List[Match]:
        return [Match(fact) for fact in index.of(kind) if where(fact)]
    return run


def _related(correlation: Correlation, options: Dict[str, Any]) -> Callable[[FactIndex, Fact], List[Fact]]:
    where = compile_all(correlation.where, options)
    pairs = list(correlation.match.items())

    def find(index: FactIndex, anchor: Fact) -> List[Fact]:
        wanted = [(related_field, anchor.get(anchor_field)) for related_field, anchor_field in pairs]
        if any(value is None for _, value in wanted):
            return []
        return [
            fact for fact in index.of(correlation.kind)
            if fact is not anchor
            and all(fact.get(field) == value for field, value in wanted)
            and where(fact)
        ]
    return find


def with_related(base: Matcher, correlation: Correlation, options: Dict[str, Any]) -> Matcher:
    """Keeps matches for which at least `min_count` correlated facts exist."""
    find = _related(correlation, options)

    def run(index: FactIndex) -> List[Match]:
        matches = []
        for match in base(index):
            related = find(index, match.anchor)
            if len(related) >= correlation.min_count:
                matches.append(Match(match.anchor, match.related + tuple(related)))
        return matches
    return run


def without_related(base: Matcher, correlation: Correlation, options: Dict[str, Any]) -> Matcher:
    """Drops matches for which a correlated fact exists."""
    find = _related(correlation, options)

    def run(index: FactIndex) -> List[Match]:
        return [m for m in base(index) if len(find(index, m.anchor)) < correlation.min_count]
    return run


def any_of(matchers: Sequence[Matcher]) -> Matcher:
    """Union of alternatives; an anchor matched by several alternatives is reported once."""
    def run(index: FactIndex) -> List[Match]:
        seen = set()
        matches = []
        for matcher in matchers:
            for match in matcher(index):
                if id(match.anchor) in seen:
                    continue
                seen.add(id(match.anchor))
                matches.append(match)
        return matches
    return run


def compile_matcher(spec: MatcherSpec, options: Dict[str, Any]) -> Matcher:
    if spec.any_of is not None:
        return any_of([compile_matcher(alternative, options) for alternative in spec.any_of])

    matcher = each(spec.each, compile_all(spec.where, options))
    for correlation in spec.with_:
        matcher = with_related(matcher, correlation, options)
    for correlation in spec.without:
        matcher = without_related(matcher, correlation, options)
    return matcher
