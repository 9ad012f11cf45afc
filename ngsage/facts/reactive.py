from typing import Dict, Iterable, List, Optional, Set

from tree_sitter import Node

from ngsage.analyzers.ast_models import Declaration, MemberKind
from ngsage.facts.base import BaseCollector, ExtractionContext, call_target, this_property
from ngsage.facts.models import Fact, FactKind

SIGNAL_FACTORIES = {"signal", "computed", "input", "input.required", "model", "model.required", "linkedSignal", "toSignal"}
WRITABLE_FACTORIES = {"signal", "model", "model.required", "linkedSignal"}
WRITE_METHODS = {"set", "update", "mutate"}


def signal_factory(initializer: Optional[str]) -> Optional[str]:
    """Returns the signal factory an initializer calls, e.g. `signal` for `signal<number>(0)`."""
    if not initializer:
        return None
    head = initializer.split("(", 1)[0].split("<", 1)[0].strip()
    return head if head in SIGNAL_FACTORIES else None


class ReactiveCollector(BaseCollector):
    """Signals, computeds and effects, plus where signals are read and written."""

    category = "reactive"
    produces = frozenset({
        FactKind.SIGNAL_DECLARED,
        FactKind.COMPUTED_DECLARED,
        FactKind.EFFECT_DECLARED,
        FactKind.SIGNAL_READ,
        FactKind.SIGNAL_WRITTEN,
    })

    def collect(self, ctx: ExtractionContext, decl: Declaration) -> Iterable[Fact]:
        facts: List[Fact] = []
        signals: Dict[str, str] = {}
        for member in decl.members_of_kind(MemberKind.PROPERTY):
            factory = signal_factory(member.initializer)
            if factory is None:
                continue
            signals[member.name] = factory
            if factory == "computed":
                facts.append(self.fact(ctx, FactKind.COMPUTED_DECLARED, decl, member.range, member=member.name, signal=member.name))
            facts.append(self.fact(
                ctx,
                FactKind.SIGNAL_DECLARED,
                decl,
                member.range,
                member=member.name,
                signal=member.name,
                factory=factory,
                writable=factory in WRITABLE_FACTORIES,
            ))

        for member_name, node in self.code_roots(decl):
            self._visit(ctx, decl, member_name, node, signals, None, False, facts)
        return facts

    def _visit(self, ctx: ExtractionContext, decl: Declaration, member: Optional[str], node: Node,
               signals: Dict[str, str], scope: Optional[str], untracked: bool, facts: List[Fact]):
        if node.type == "call_expression":
            receiver, callee = call_target(ctx, node)
            function = node.child_by_field_name("function")

            if function is not None and function.type == "identifier" and callee == "effect":
                effect_scope = f"effect@{node.start_point[0] + 1}:{node.start_point[1] + 1}"
                facts.append(self.fact(ctx, FactKind.EFFECT_DECLARED, decl, node, member=member, scope=effect_scope))
                for child in node.children:
                    self._visit(ctx, decl, member, child, signals, effect_scope, False, facts)
                return

            if function is not None and function.type == "identifier" and callee == "untracked":
                for child in node.children:
                    self._visit(ctx, decl, member, child, signals, scope, True, facts)
                return

            name = this_property(ctx, function)
            if name in signals:
                facts.append(self.fact(
                    ctx, FactKind.SIGNAL_READ, decl, node, member=member, signal=name, scope=scope, untracked=untracked,
                ))
            elif callee in WRITE_METHODS:
                name = this_property(ctx, receiver)
                if name in signals:
                    facts.append(self.fact(
                        ctx, FactKind.SIGNAL_WRITTEN, decl, node, member=member, signal=name, scope=scope, method=callee,
                        derived=scope is not None and self._derived_write(ctx, node, signals),
                    ))

        for child in node.children:
            self._visit(ctx, decl, member, child, signals, scope, untracked, facts)

    def _derived_write(self, ctx: ExtractionContext, write: Node, signals: Dict[str, str]) -> bool:
        """True when the written value is computed from signals the enclosing effect reads."""
        effect = write.parent
        while effect is not None and not (effect.type == "call_expression" and call_target(ctx, effect)[1] == "effect"):
            effect = effect.parent
        if effect is None:
            return False

        # locals assigned from signal reads, directly or through other such locals
        dependent: Set[str] = set()
        for node in ctx.walk(effect):
            if node.start_byte >= write.start_byte:
                break
            if node.type == "variable_declarator":
                name = node.child_by_field_name("name")
                value = node.child_by_field_name("value")
                if name is not None and name.type == "identifier" and value is not None \
                        and self._reads_signals(ctx, value, signals, dependent):
                    dependent.add(ctx.text(name))

        arguments = write.child_by_field_name("arguments")
        return arguments is not None and self._reads_signals(ctx, arguments, signals, dependent)

    def _reads_signals(self, ctx: ExtractionContext, node: Node, signals: Dict[str, str], dependent: Set[str]) -> bool:
        for child in ctx.walk(node):
            if child.type in ("identifier", "shorthand_property_identifier") and ctx.text(child) in dependent:
                return True
            if child.type == "call_expression" and this_property(ctx, child.child_by_field_name("function")) in signals:
                return True
        return False
