from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, Iterator, Optional, Tuple

import structlog
import yaml
from pydantic import BaseModel, Field, ValidationError

from ngsage.errors import CatalogLoadError
from ngsage.facts.models import FactKind
from ngsage.models.diagnostic import RESERVED_RULE_IDS
from ngsage.rules.matchers import Matcher, compile_matcher
from ngsage.rules.models import CatalogFile, RuleDefinition

logger = structlog.get_logger()

DEFAULT_CATALOG_PATH = Path(__file__).parent / "catalog.yaml"


class Rule(BaseModel):
    """A catalog entry together with its compiled matcher."""

    definition: RuleDefinition
    options: Dict[str, Any] = Field(default_factory=dict, description="Effective options after overrides.")
    matcher: Any = Field(..., exclude=True, repr=False)

    class Config:
        frozen = True
        arbitrary_types_allowed = True

    @property
    def id(self) -> str:
        return self.definition.id

    @property
    def severity(self) -> str:
        return self.definition.severity

    def match(self, index) -> list:
        matcher: Matcher = self.matcher
        return matcher(index)


class RuleCatalog:
    """
    The loaded rules, in declaration order.

    The catalog is read-only once built: rules live in a tuple, and selecting a
    subset returns a new catalog instead of changing this one.
    """

    __slots__ = ("_rules", "_by_id")

    def __init__(self, rules: Iterable[Rule]):
        self._rules: Tuple[Rule, ...] = tuple(rules)
        self._by_id = {rule.id: rule for rule in self._rules}

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    @property
    def ids(self) -> Tuple[str, ...]:
        return tuple(rule.id for rule in self._rules)

    def get(self, rule_id: str) -> Optional[Rule]:
        return self._by_id.get(rule_id)

    def select(self, rule_ids: Optional[Iterable[str]]) -> "RuleCatalog":
        if not rule_ids:
            return self
        wanted = list(dict.fromkeys(rule_ids))
        unknown = [rule_id for rule_id in wanted if rule_id not in self._by_id]
        if unknown:
            raise CatalogLoadError(f"Unknown rule id(s): {', '.join(unknown)}")
        return RuleCatalog(rule for rule in self._rules if rule.id in wanted)


def _read_catalog(path: Path) -> CatalogFile:
    if not path.exists():
        raise CatalogLoadError(f"Rule catalog not found at: {path}")
    try:
        raw_data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise CatalogLoadError(f"Rule catalog {path} is not valid YAML: {e}")
    if not isinstance(raw_data, dict):
        raise CatalogLoadError(f"Rule catalog {path} must be a mapping with a 'rules' list.")
    try:
        return CatalogFile.model_validate(raw_data)
    except ValidationError as e:
        raise CatalogLoadError(f"Invalid rule catalog {path}: {e}")


def _effective_options(definition: RuleDefinition, overrides: Dict[str, Any]) -> Dict[str, Any]:
    unknown = sorted(set(overrides) - set(definition.options))
    if unknown:
        raise CatalogLoadError(f"Rule '{definition.id}' has no option(s): {', '.join(unknown)}")
    return {**definition.options, **overrides}


def load_catalog(
    path: Optional[Path] = None,
    produced_kinds: Optional[FrozenSet[FactKind]] = None,
    rule_options: Optional[Dict[str, Dict[str, Any]]] = None,
) -> RuleCatalog:
    """
    Loads and validates a rule catalog.

    Args:
        path: The catalog file. Defaults to the built-in catalog.
        produced_kinds: Fact kinds the extractor can produce. Every matcher
            must only refer to these.
        rule_options: Per-rule option overrides, keyed by rule id.

    Returns:
        The immutable catalog, with matchers compiled.

    Raises:
        CatalogLoadError: If the file is unreadable or invalid, two rules share an
            id, a rule uses a reserved id, a matcher refers to a fact kind
            that is never produced, or an option is undefined.
    """
    path = Path(path) if path is not None else DEFAULT_CATALOG_PATH
    rule_options = rule_options or {}
    catalog_file = _read_catalog(path)

    seen = set()
    for definition in catalog_file.rules:
        if definition.id in RESERVED_RULE_IDS:
            raise CatalogLoadError(f"Rule id '{definition.id}' is reserved.")
        if definition.id in seen:
            raise CatalogLoadError(f"Duplicate rule id '{definition.id}'.")
        seen.add(definition.id)

    unknown_overrides = sorted(set(rule_options) - seen)
    if unknown_overrides:
        raise CatalogLoadError(f"Options given for unknown rule(s): {', '.join(unknown_overrides)}")

    rules = []
    for definition in catalog_file.rules:
        if produced_kinds is not None:
            missing = sorted({k.value for k in definition.matcher.fact_kinds()} - {k.value for k in produced_kinds})
            if missing:
                raise CatalogLoadError(
                    f"Rule '{definition.id}' matches fact kind(s) the extractor never produces: {', '.join(missing)}"
                )
        options = _effective_options(definition, rule_options.get(definition.id, {}))
        rules.append(Rule(definition=definition, options=options, matcher=compile_matcher(definition.matcher, options)))

    logger.debug("Rule catalog loaded", path=str(path), rules=len(rules))
    return RuleCatalog(rules)
