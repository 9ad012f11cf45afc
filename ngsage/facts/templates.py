import re
from typing import Iterable, List, Optional, Set

from ngsage.analyzers.ast_models import Binding, BindingKind, Declaration, DeclarationKind, MemberKind
from ngsage.analyzers.template_parser import (
    CONDITIONAL_DIRECTIVES,
    LOOP_DIRECTIVES,
    find_calls,
    parse_ng_for,
    root_identifier,
)
from ngsage.facts.base import BaseCollector, ExtractionContext, call_target, this_property
from ngsage.facts.models import Fact, FactKind
from ngsage.facts.reactive import signal_factory

SAFE_TYPES = {"SafeHtml", "SafeUrl", "SafeResourceUrl", "SafeStyle", "SafeScript"}
IMPURE_CALLS = {("Math", "random"), ("Date", "now")}
COLLECTION_SIZE_PATTERN = re.compile(r"^\s*(?:Array\.from\(\s*\{\s*length:\s*(\d+)|(?:new\s+)?Array(?:<[^>]*>)?\(\s*(\d+)\s*\))")
SANITIZING_CALLS = {
    "sanitize",
    "bypassSecurityTrustHtml",
    "bypassSecurityTrustUrl",
    "bypassSecurityTrustResourceUrl",
    "bypassSecurityTrustStyle",
    "bypassSecurityTrustScript",
}


class TemplateCollector(BaseCollector):
    """Template bindings, the calls and pipes inside them, and sanitized values they may render."""

    category = "template"
    produces = frozenset({
        FactKind.TEMPLATE_BINDING,
        FactKind.TEMPLATE_CALL,
        FactKind.PIPE_DECLARED,
        FactKind.PIPE_USED,
        FactKind.STRUCTURAL_DIRECTIVE,
        FactKind.ITERATION_WITHOUT_KEY,
        FactKind.NESTED_CONDITIONAL,
        FactKind.SANITIZED_VALUE,
        FactKind.LOOP_RENDERED,
        FactKind.COLLECTION_SIZE,
    })

    def collect(self, ctx: ExtractionContext, decl: Declaration) -> Iterable[Fact]:
        facts: List[Fact] = []
        if decl.kind == DeclarationKind.PIPE:
            facts.append(self.fact(
                ctx,
                FactKind.PIPE_DECLARED,
                decl,
                decl.range,
                name=decl.metadata.get("name", decl.name).strip("'\"`"),
                pure=decl.metadata.get("pure", "true").strip() != "false",
            ))

        for binding in decl.bindings:
            facts.extend(self._binding_facts(ctx, decl, binding))

        if decl.kind in (DeclarationKind.COMPONENT, DeclarationKind.DIRECTIVE):
            facts.extend(self._sanitized(ctx, decl))
            facts.extend(self._collection_sizes(ctx, decl))
        return facts

    def _binding_facts(self, ctx: ExtractionContext, decl: Declaration, binding: Binding) -> List[Fact]:
        facts = []
        where = binding.range
        if binding.kind == BindingKind.PIPE:
            facts.append(self.fact(
                ctx, FactKind.PIPE_USED, decl, where, binding=binding.index, pipe=binding.name, source=binding.expression,
            ))
            return facts

        facts.append(self.fact(
            ctx,
            FactKind.TEMPLATE_BINDING,
            decl,
            where,
            binding=binding.index,
            binding_kind=binding.kind.value,
            name=binding.name,
            expression=binding.expression,
            root=root_identifier(binding.expression),
        ))

        if binding.kind == BindingKind.STRUCTURAL:
            if not binding.name.startswith("@"):
                facts.append(self.fact(
                    ctx, FactKind.STRUCTURAL_DIRECTIVE, decl, where, binding=binding.index,
                    directive=binding.name, element=binding.element_index, expression=binding.expression,
                ))
            if binding.name in LOOP_DIRECTIVES:
                iterable, has_key = parse_ng_for(binding.expression)
                facts.append(self.fact(
                    ctx, FactKind.LOOP_RENDERED, decl, where, binding=binding.index,
                    directive=binding.name, iterable=iterable, root=root_identifier(iterable or ""),
                ))
                if not has_key:
                    facts.append(self.fact(
                        ctx, FactKind.ITERATION_WITHOUT_KEY, decl, where, binding=binding.index,
                        directive=binding.name, iterable=iterable,
                    ))
            if binding.name in CONDITIONAL_DIRECTIVES:
                facts.append(self.fact(
                    ctx, FactKind.NESTED_CONDITIONAL, decl, where, binding=binding.index,
                    directive=binding.name, depth=len(binding.conditional_ancestors) + 1,
                ))

        if binding.kind != BindingKind.EVENT:
            for callee, _, arguments in find_calls(binding.expression):
                kind, side_effects = self._callee(ctx, decl, callee)
                facts.append(self.fact(
                    ctx, FactKind.TEMPLATE_CALL, decl, where, binding=binding.index,
                    callee=callee, callee_kind=kind, arguments=arguments, side_effects=side_effects,
                ))
        return facts

    def _callee(self, ctx: ExtractionContext, decl: Declaration, callee: str):
        member = decl.member(callee)
        if member is None:
            return "unknown", False
        if member.kind == MemberKind.METHOD:
            return "method", self._has_side_effects(ctx, member.node)
        if member.kind == MemberKind.PROPERTY and signal_factory(member.initializer):
            return "signal", False
        return "property", False

    def _has_side_effects(self, ctx: ExtractionContext, node) -> bool:
        if node is None:
            return False
        for child in ctx.walk(node):
            if child.type == "call_expression":
                receiver, name = call_target(ctx, child)
                target = ctx.text(receiver) if receiver is not None else None
                if target == "console" or (target, name) in IMPURE_CALLS:
                    return True
            elif child.type == "new_expression":
                constructor = child.child_by_field_name("constructor")
                if constructor is not None and ctx.text(constructor) == "Date":
                    return True
            elif child.type in ("assignment_expression", "augmented_assignment_expression"):
                if this_property(ctx, child.child_by_field_name("left")) is not None:
                    return True
            elif child.type == "update_expression":
                if any(this_property(ctx, c) is not None for c in child.named_children):
                    return True
        return False

    def _sanitized(self, ctx: ExtractionContext, decl: Declaration) -> List[Fact]:
        facts = []
        seen: Set[str] = set()
        for member in decl.members:
            if member.kind not in (MemberKind.PROPERTY, MemberKind.PARAMETER_PROPERTY):
                continue
            type_name = (member.declared_type or "").split("|")[0].strip()
            if type_name in SAFE_TYPES or self._sanitizing(member.initializer):
                seen.add(member.name)
                facts.append(self.fact(ctx, FactKind.SANITIZED_VALUE, decl, member.range, member=member.name,
                                       field=member.name, via=type_name if type_name in SAFE_TYPES else "initializer"))

        for member_name, node in self.code_roots(decl):
            for child in ctx.walk(node):
                if child.type != "assignment_expression":
                    continue
                field = this_property(ctx, child.child_by_field_name("left"))
                if field is None or field in seen or not self._sanitizing(ctx.text(child.child_by_field_name("right"))):
                    continue
                seen.add(field)
                facts.append(self.fact(ctx, FactKind.SANITIZED_VALUE, decl, child, member=member_name,
                                       field=field, via="assignment"))
        return facts

    def _sanitizing(self, expression: Optional[str]) -> bool:
        if not expression:
            return False
        return any(f".{name}(" in expression for name in SANITIZING_CALLS)

    def _collection_sizes(self, ctx: ExtractionContext, decl: Declaration) -> List[Fact]:
        """Fields initialized with a literal-sized collection, e.g. `Array.from({ length: 5000 }, ...)`."""
        facts = []
        for member in decl.members_of_kind(MemberKind.PROPERTY):
            match = COLLECTION_SIZE_PATTERN.search(member.initializer or "")
            if match:
                size = int(match.group(1) or match.group(2))
                facts.append(self.fact(ctx, FactKind.COLLECTION_SIZE, decl, member.range, member=member.name,
                                       field=member.name, size=size))
        return facts
