from abc import ABC, abstractmethod
from typing import FrozenSet, Iterable, Iterator, List, Optional, Tuple

from tree_sitter import Node

from ngsage.analyzers.ast_models import Declaration, Member, MemberKind, SourceRange, SourceUnit
from ngsage.analyzers.base import LineIndex
from ngsage.facts.models import Fact, FactKind

FUNCTION_NODES = {"arrow_function", "function_expression", "function", "function_declaration", "method_definition"}
CHAIN_NODES = {"member_expression", "subscript_expression", "non_null_expression"}
CODE_MEMBERS = {MemberKind.PROPERTY, MemberKind.METHOD, MemberKind.CONSTRUCTOR, MemberKind.ACCESSOR}


class ExtractionContext:
    """Read-only view of one unit shared by the collectors during a single extraction."""

    def __init__(self, unit: SourceUnit):
        self.unit = unit
        self.source = unit.source
        self.lines = LineIndex(unit.source)

    def text(self, node: Node) -> str:
        return self.source[node.start_byte:node.end_byte].decode("utf8")

    def range(self, node: Node) -> SourceRange:
        return self.lines.range(node.start_byte, node.end_byte)

    def walk(self, node: Node) -> Iterator[Node]:
        stack = [node]
        while stack:
            n = stack.pop()
            yield n
            stack.extend(reversed(n.children))

    def member_at(self, decl: Declaration, offset: int) -> Optional[Member]:
        """Innermost member of `decl` whose range contains `offset`."""
        best = None
        for member in decl.members:
            if member.range.start <= offset < member.range.end:
                if best is None or member.range.end - member.range.start < best.range.end - best.range.start:
                    best = member
        return best

    def decorator_property(self, decl: Declaration, key: str) -> Optional[Node]:
        """Value node of `key` in the Angular decorator's metadata object."""
        node = decl.node
        if node is None or decl.decorator is None:
            return None
        candidates = [c for c in node.children if c.type == "decorator"]
        if node.parent is not None and node.parent.type == "export_statement":
            candidates = [c for c in node.parent.children if c.type == "decorator"] + candidates
        for decorator in candidates:
            call = decorator.named_children[0] if decorator.named_children else None
            if call is None or call.type != "call_expression":
                continue
            if self.text(call.child_by_field_name("function")).split(".")[-1] != decl.decorator:
                continue
            arguments = call.child_by_field_name("arguments")
            for obj in arguments.named_children if arguments else []:
                if obj.type != "object":
                    continue
                for pair in obj.named_children:
                    if pair.type == "pair" and self.text(pair.child_by_field_name("key")).strip("'\"") == key:
                        return pair.child_by_field_name("value")
        return None


def this_property(ctx: ExtractionContext, node: Optional[Node]) -> Optional[str]:
    """Returns `X` for a `this.X` member expression, otherwise None."""
    if node is None or node.type != "member_expression":
        return None
    obj = node.child_by_field_name("object")
    prop = node.child_by_field_name("property")
    if obj is None or prop is None or obj.type != "this":
        return None
    return ctx.text(prop).lstrip("#")


def call_target(ctx: ExtractionContext, call: Node) -> Tuple[Optional[Node], Optional[str]]:
    """Splits a call into (receiver node, callee name)."""
    function = call.child_by_field_name("function")
    if function is None:
        return None, None
    if function.type == "member_expression":
        prop = function.child_by_field_name("property")
        return function.child_by_field_name("object"), ctx.text(prop) if prop is not None else None
    if function.type == "identifier":
        return None, ctx.text(function)
    return None, None


def unwind_chain(node: Node) -> Tuple[Node, List[Node]]:
    """Walks a property-access chain down to its root, returning (root, steps)."""
    steps: List[Node] = []
    while node.type in CHAIN_NODES or node.type == "parenthesized_expression":
        if node.type == "non_null_expression" or node.type == "parenthesized_expression":
            node = node.named_children[0]
            continue
        steps.append(node)
        node = node.child_by_field_name("object")
    steps.reverse()
    return node, steps


def function_parameters(ctx: ExtractionContext, function: Node) -> List[str]:
    params = function.child_by_field_name("parameters")
    if params is None:
        single = function.child_by_field_name("parameter")
        return [ctx.text(single)] if single is not None else []
    names = []
    for param in params.named_children:
        pattern = param.child_by_field_name("pattern")
        if pattern is not None and pattern.type == "identifier":
            names.append(ctx.text(pattern))
    return names


def callback_arguments(call: Node) -> List[Node]:
    arguments = call.child_by_field_name("arguments")
    if arguments is None:
        return []
    return [a for a in arguments.named_children if a.type in FUNCTION_NODES]


class BaseCollector(ABC):
    """Emits the facts of one category for a declaration."""

    category: str = ""
    produces: FrozenSet[FactKind] = frozenset()

    @abstractmethod
    def collect(self, ctx: ExtractionContext, decl: Declaration) -> Iterable[Fact]:
        """
        Emits this category's facts for one declaration.

        Args:
            ctx: The extraction context of the unit owning `decl`.
            decl: The declaration to inspect.

        Returns:
            The facts in discovery order.
        """
        raise NotImplementedError

    def fact(self, ctx: ExtractionContext, fact_kind: FactKind, decl: Declaration, where, member: Optional[str] = None,
             binding: Optional[int] = None, **payload) -> Fact:
        location = where if isinstance(where, SourceRange) else ctx.range(where)
        return Fact(kind=fact_kind, declaration=decl.id, member=member, binding=binding, range=location, payload=payload)

    def member_nodes(self, decl: Declaration) -> Iterator[Tuple[Member, Node]]:
        """Yields (member, node) for members that carry code."""
        for member in decl.members:
            if member.node is not None and member.kind in CODE_MEMBERS:
                yield member, member.node

    def code_roots(self, decl: Declaration) -> Iterator[Tuple[Optional[str], Node]]:
        """Yields (member name, node) for every body of code owned by `decl`."""
        if decl.node is None:
            return
        if decl.node.type in ("class_declaration", "abstract_class_declaration"):
            for member, node in self.member_nodes(decl):
                yield member.name, node
        elif decl.node.type not in ("interface_body", "object_type"):
            yield None, decl.node
