from typing import Iterable, List, Optional

from tree_sitter import Node

from ngsage.analyzers.ast_models import Declaration, MemberKind
from ngsage.facts.base import BaseCollector, ExtractionContext, call_target, this_property
from ngsage.facts.models import Fact, FactKind

# operators that complete the stream on their own
DISPOSING_OPERATORS = {"takeUntil", "takeUntilDestroyed", "take", "first", "takeWhile"}
CONTAINER_METHODS = {"add", "push"}


class SubscriptionCollector(BaseCollector):
    """Observable subscriptions and the teardown that disposes them."""

    category = "subscription"
    produces = frozenset({
        FactKind.SUBSCRIPTION_CREATED,
        FactKind.SUBSCRIPTION_STORED,
        FactKind.SUBSCRIPTION_DISPOSED,
        FactKind.TEARDOWN_HOOK,
        FactKind.SUBSCRIPTION_ASSIGNMENT,
    })

    def collect(self, ctx: ExtractionContext, decl: Declaration) -> Iterable[Fact]:
        facts: List[Fact] = []
        for member in decl.members:
            if member.name == "ngOnDestroy" and member.kind == MemberKind.METHOD:
                facts.append(self.fact(ctx, FactKind.TEARDOWN_HOOK, decl, member.range, member=member.name, via="ngOnDestroy"))
            elif member.declared_type == "DestroyRef" or (member.initializer or "").replace(" ", "") == "inject(DestroyRef)":
                facts.append(self.fact(ctx, FactKind.TEARDOWN_HOOK, decl, member.range, member=member.name, via="DestroyRef"))

        for member_name, node in self.code_roots(decl):
            teardown = member_name == "ngOnDestroy"
            self._visit(ctx, decl, member_name, node, 0, None, teardown, facts)
        return facts

    def _visit(self, ctx: ExtractionContext, decl: Declaration, member: Optional[str], node: Node,
               depth: int, parent: Optional[str], teardown: bool, facts: List[Fact]):
        if node.type == "call_expression":
            receiver, callee = call_target(ctx, node)
            if callee == "subscribe" and receiver is not None:
                call_id = f"subscribe@{node.start_point[0] + 1}:{node.start_point[1] + 1}"
                self._subscription(ctx, decl, member, node, receiver, call_id, depth, parent, facts)
                # everything under the subscribe arguments runs inside its callback
                for child in node.children:
                    inner = child.type == "arguments"
                    self._visit(ctx, decl, member, child, depth + 1 if inner else depth,
                                call_id if inner else parent, teardown, facts)
                return

            if callee == "unsubscribe":
                field = this_property(ctx, receiver) or self._iterated_field(ctx, node, receiver)
                if field is not None:
                    facts.append(self.fact(
                        ctx, FactKind.SUBSCRIPTION_DISPOSED, decl, node, member=member,
                        call=None, field=field, via="unsubscribe", lifecycle_bound=teardown,
                    ))

            if callee == "onDestroy":
                for child in node.children:
                    self._visit(ctx, decl, member, child, depth, parent, True, facts)
                return

        if node.type == "assignment_expression" and parent is not None:
            field = this_property(ctx, node.child_by_field_name("left"))
            if field is not None and not any(
                f.kind == FactKind.SUBSCRIPTION_ASSIGNMENT and f.payload["call"] == parent and f.payload["field"] == field
                for f in facts
            ):
                facts.append(self.fact(ctx, FactKind.SUBSCRIPTION_ASSIGNMENT, decl, node, member=member, call=parent, field=field))

        for child in node.children:
            self._visit(ctx, decl, member, child, depth, parent, teardown, facts)

    def _subscription(self, ctx: ExtractionContext, decl: Declaration, member: Optional[str], node: Node,
                      receiver: Node, call_id: str, depth: int, parent: Optional[str], facts: List[Fact]):
        operators = []
        source = receiver
        while source.type == "call_expression":
            inner, name = call_target(ctx, source)
            if name != "pipe" or inner is None:
                break
            arguments = source.child_by_field_name("arguments")
            operators = [self._operator_name(ctx, a) for a in arguments.named_children] + operators if arguments else operators
            source = inner
        operators = [op for op in operators if op]

        stored_in = self._storage_field(ctx, node)
        facts.append(self.fact(
            ctx,
            FactKind.SUBSCRIPTION_CREATED,
            decl,
            node,
            member=member,
            call=call_id,
            source=" ".join(ctx.text(source).split())[:80],
            operators=operators,
            stored_in=stored_in,
            depth=depth,
            parent=parent,
        ))
        if stored_in is not None:
            facts.append(self.fact(ctx, FactKind.SUBSCRIPTION_STORED, decl, node, member=member, call=call_id, field=stored_in))
        for operator in operators:
            if operator in DISPOSING_OPERATORS:
                facts.append(self.fact(
                    ctx, FactKind.SUBSCRIPTION_DISPOSED, decl, node, member=member,
                    call=call_id, field=None, via=operator, lifecycle_bound=True,
                ))
                break

    def _operator_name(self, ctx: ExtractionContext, argument: Node) -> Optional[str]:
        if argument.type != "call_expression":
            return None
        _, name = call_target(ctx, argument)
        return name

    def _storage_field(self, ctx: ExtractionContext, call: Node) -> Optional[str]:
        parent = call.parent
        while parent is not None and parent.type in ("parenthesized_expression", "as_expression"):
            parent = parent.parent
        if parent is None:
            return None
        if parent.type == "assignment_expression":
            return this_property(ctx, parent.child_by_field_name("left"))
        if parent.type == "arguments" and parent.parent is not None and parent.parent.type == "call_expression":
            container, method = call_target(ctx, parent.parent)
            if method in CONTAINER_METHODS:
                return this_property(ctx, container)
        return None

    def _iterated_field(self, ctx: ExtractionContext, node: Node, receiver: Optional[Node]) -> Optional[str]:
        """Resolves `s` in `this.subs.forEach(s => s.unsubscribe())` to `subs`."""
        if receiver is None or receiver.type != "identifier":
            return None
        ancestor = node.parent
        while ancestor is not None:
            if ancestor.type == "call_expression":
                container, method = call_target(ctx, ancestor)
                if method == "forEach":
                    return this_property(ctx, container)
            ancestor = ancestor.parent
        return None
