from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from ngsage.analyzers.ast_models import SourceRange


class FactKind(str, Enum):
    # declaration
    DECLARATION_FOUND = "declaration_found"
    MEMBER_DECLARED = "member_declared"
    PROVIDER_REGISTERED = "provider_registered"
    ENTITY_DECLARED = "entity_declared"
    # reactive state
    SIGNAL_DECLARED = "signal_declared"
    COMPUTED_DECLARED = "computed_declared"
    EFFECT_DECLARED = "effect_declared"
    SIGNAL_READ = "signal_read"
    SIGNAL_WRITTEN = "signal_written"
    # subscription lifecycle
    SUBSCRIPTION_CREATED = "subscription_created"
    SUBSCRIPTION_STORED = "subscription_stored"
    SUBSCRIPTION_DISPOSED = "subscription_disposed"
    TEARDOWN_HOOK = "teardown_hook"
    SUBSCRIPTION_ASSIGNMENT = "subscription_assignment"
    # template
    TEMPLATE_BINDING = "template_binding"
    TEMPLATE_CALL = "template_call"
    PIPE_DECLARED = "pipe_declared"
    PIPE_USED = "pipe_used"
    STRUCTURAL_DIRECTIVE = "structural_directive"
    ITERATION_WITHOUT_KEY = "iteration_without_key"
    NESTED_CONDITIONAL = "nested_conditional"
    SANITIZED_VALUE = "sanitized_value"
    LOOP_RENDERED = "loop_rendered"
    COLLECTION_SIZE = "collection_size"
    # state shape
    STATE_SHAPE = "state_shape"
    STATE_FIELD = "state_field"
    STATE_REFERENCE = "state_reference"
    PROPERTY_MUTATION = "property_mutation"
    SELECTOR_DECLARED = "selector_declared"
    # stream combinators
    FLATTENING_OPERATOR = "flattening_operator"
    SUBJECT_DECLARED = "subject_declared"
    SUBJECT_EXPOSED = "subject_exposed"
    STREAM_SHARED = "stream_shared"
    # change detection
    DETECTION_STRATEGY = "detection_strategy"
    MANUAL_CHANGE_DETECTION = "manual_change_detection"
    TIMER_SCHEDULED = "timer_scheduled"
    # typescript
    ANY_TYPE = "any_type"
    NON_NULL_ASSERTION = "non_null_assertion"


class Fact(BaseModel):
    """An atomic observation about one SourceUnit. Immutable once emitted."""

    kind: FactKind = Field(..., description="The fact kind.")
    declaration: str = Field(..., description="Id of the declaration the fact is about.")
    member: Optional[str] = Field(None, description="Name of the member the fact is about, if any.")
    binding: Optional[int] = Field(None, description="Index of the template binding the fact is about, if any.")
    range: SourceRange = Field(..., description="Where the observation was made.")
    payload: Dict[str, Any] = Field(default_factory=dict, description="Kind-specific attributes.")

    class Config:
        frozen = True

    def get(self, field: str) -> Any:
        """
        Resolves a dotted field reference used by matcher specs.

        `declaration`, `member`, `binding` and `kind` address the subjects;
        `payload.<key>` addresses payload entries. Unknown fields resolve to None.
        """
        if field == "kind":
            return self.kind.value
        if field in ("declaration", "member", "binding"):
            return getattr(self, field)
        if field.startswith("payload."):
            return self.payload.get(field[len("payload."):])
        return None
