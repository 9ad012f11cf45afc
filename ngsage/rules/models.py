import re
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from ngsage.facts.models import FactKind

Severity = Literal["info", "warning", "error"]

RULE_ID_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


class Condition(BaseModel):
    field: str = Field(..., description="The fact field to evaluate, e.g. 'payload.depth' or 'member'.")
    op: str = Field("==", description="The comparison operator.")
    value: Any = Field(None, description="The value to compare against, or {option: name}.")

    class Config:
        extra = "forbid"

    @field_validator("op")
    @classmethod
    def op_must_be_valid(cls, v: str) -> str:
        """Validate that the operator is one of the allowed values."""
        valid_ops = {"==", "!=", ">", "<", ">=", "<=", "in", "not in", "exists"}
        if v not in valid_ops:
            raise ValueError(f"Operator '{v}' is not valid. Must be one of {sorted(list(valid_ops))}")
        return v


class ConditionGroup(BaseModel):
    """Boolean combination of conditions: exactly one of `any`, `all` or `not`."""

    any_: Optional[List["Predicate"]] = Field(None, alias="any")
    all_: Optional[List["Predicate"]] = Field(None, alias="all")
    not_: Optional["Predicate"] = Field(None, alias="not")

    class Config:
        extra = "forbid"
        populate_by_name = True

    @model_validator(mode="after")
    def exactly_one_operator(self):
        given = [v for v in (self.any_, self.all_, self.not_) if v is not None]
        if len(given) != 1:
            raise ValueError("A condition group takes exactly one of 'any', 'all' or 'not'.")
        return self


Predicate = Union[Condition, ConditionGroup]


class Correlation(BaseModel):
    kind: FactKind = Field(..., description="Kind of the related fact.")
    match: Dict[str, str] = Field(default_factory=dict, description="Related fact field -> anchor fact field.")
    where: List[Predicate] = Field(default_factory=list, description="Conditions on the related fact.")
    min_count: int = Field(1, ge=1, description="How many related facts must exist.")

    class Config:
        extra = "forbid"


class MatcherSpec(BaseModel):
    each: Optional[FactKind] = Field(None, description="The fact kind anchoring a match.")
    where: List[Predicate] = Field(default_factory=list)
    with_: List[Correlation] = Field(default_factory=list, alias="with")
    without: List[Correlation] = Field(default_factory=list)
    any_of: Optional[List["MatcherSpec"]] = None

    class Config:
        extra = "forbid"
        populate_by_name = True

    @model_validator(mode="after")
    def anchor_or_alternatives(self):
        if (self.each is None) == (self.any_of is None):
            raise ValueError("A matcher takes either 'each' or 'any_of'.")
        if self.any_of is not None and (self.where or self.with_ or self.without):
            raise ValueError("'any_of' cannot be combined with 'where', 'with' or 'without'.")
        return self

    def fact_kinds(self) -> List[FactKind]:
        """Every fact kind this spec refers to."""
        if self.any_of is not None:
            kinds: List[FactKind] = []
            for spec in self.any_of:
                kinds.extend(spec.fact_kinds())
            return kinds
        return [self.each] + [c.kind for c in self.with_] + [c.kind for c in self.without]


class RuleDefinition(BaseModel):
    id: str = Field(..., description="Unique kebab-case identifier of the anti-pattern family.")
    title: str
    severity: Severity
    category: str
    rationale: str = ""
    message: str = Field(..., description="Template rendered with the anchor fact, e.g. '{payload.signal}'.")
    fix_hint: Optional[str] = None
    options: Dict[str, Any] = Field(default_factory=dict, description="Tunable thresholds referenced by the matcher.")
    matcher: MatcherSpec

    class Config:
        frozen = True

    @field_validator("id")
    @classmethod
    def id_must_be_kebab_case(cls, v: str) -> str:
        if not RULE_ID_PATTERN.match(v):
            raise ValueError(f"Rule id '{v}' must be kebab-case.")
        return v


class CatalogFile(BaseModel):
    rules: List[RuleDefinition]


ConditionGroup.model_rebuild()
Correlation.model_rebuild()
MatcherSpec.model_rebuild()
