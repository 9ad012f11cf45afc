from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class DeclarationKind(str, Enum):
    COMPONENT = "component"
    DIRECTIVE = "directive"
    SERVICE = "service"
    PIPE = "pipe"
    MODULE = "module"
    REDUCER = "reducer"
    SELECTOR = "selector"
    GUARD = "guard"
    EFFECT_BLOCK = "effect-block"
    INTERFACE = "interface"
    CLASS = "class"
    FUNCTION = "function"


class MemberKind(str, Enum):
    PROPERTY = "property"
    METHOD = "method"
    CONSTRUCTOR = "constructor"
    ACCESSOR = "accessor"
    PARAMETER_PROPERTY = "parameter-property"
    PROPERTY_SIGNATURE = "property-signature"


class BindingKind(str, Enum):
    INTERPOLATION = "interpolation"
    PROPERTY = "property"
    EVENT = "event"
    TWO_WAY = "two-way"
    STRUCTURAL = "structural"
    PIPE = "pipe"


class SourceRange(BaseModel):
    start: int = Field(..., description="Start byte offset into the unit's UTF-8 text.")
    end: int = Field(..., description="End byte offset (exclusive).")
    line: int = Field(..., description="1-based start line.")
    column: int = Field(..., description="1-based start column.")
    end_line: int = Field(..., description="1-based end line.")
    end_column: int = Field(..., description="1-based end column.")

    class Config:
        frozen = True


class Member(BaseModel):
    name: str
    kind: MemberKind
    declared_type: Optional[str] = Field(None, description="Declared type text, when annotated.")
    initializer: Optional[str] = Field(None, description="Initializer expression text.")
    accessibility: str = "public"
    is_static: bool = False
    is_readonly: bool = False
    decorators: Dict[str, List[str]] = Field(default_factory=dict, description="Decorator name to argument texts.")
    parameters: List[str] = Field(default_factory=list)
    range: SourceRange
    node: Any = Field(None, exclude=True, repr=False)

    class Config:
        arbitrary_types_allowed = True


class Binding(BaseModel):
    """A template-level construct owned by exactly one declaration."""
    index: int
    kind: BindingKind
    name: str
    expression: str = ""
    element: str = ""
    element_index: int = -1
    conditional_ancestors: List[int] = Field(default_factory=list)
    range: SourceRange


class Declaration(BaseModel):
    id: str
    kind: DeclarationKind
    name: str
    range: SourceRange
    decorator: Optional[str] = None
    metadata: Dict[str, str] = Field(default_factory=dict, description="Decorator object-literal properties as text.")
    heritage: List[str] = Field(default_factory=list)
    members: List[Member] = Field(default_factory=list)
    bindings: List[Binding] = Field(default_factory=list)
    template_range: Optional[SourceRange] = None
    node: Any = Field(None, exclude=True, repr=False)

    class Config:
        arbitrary_types_allowed = True

    def member(self, name: str) -> Optional[Member]:
        for member in self.members:
            if member.name == name:
                return member
        return None

    def members_of_kind(self, *kinds: MemberKind) -> List[Member]:
        return [m for m in self.members if m.kind in kinds]


class SourceUnit(BaseModel):
    path: str
    text: str
    file_kind: str = "other"
    imports: List[str] = Field(default_factory=list, description="Module specifiers imported by the unit.")
    declarations: List[Declaration] = Field(default_factory=list)
    tree: Any = Field(None, exclude=True, repr=False)
    source: bytes = Field(b"", exclude=True, repr=False)

    class Config:
        arbitrary_types_allowed = True

    def declaration(self, decl_id: str) -> Optional[Declaration]:
        for decl in self.declarations:
            if decl.id == decl_id:
                return decl
        return None
