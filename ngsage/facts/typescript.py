from typing import Iterable, List

from ngsage.analyzers.ast_models import Declaration
from ngsage.facts.base import BaseCollector, ExtractionContext
from ngsage.facts.models import Fact, FactKind

ANY_CONTEXTS = {
    "type_annotation": "annotation",
    "array_type": "array",
    "as_expression": "cast",
}


class TypeScriptCollector(BaseCollector):
    """Escapes from the type checker: `any` and the `!` non-null assertion."""

    category = "typescript"
    produces = frozenset({FactKind.ANY_TYPE, FactKind.NON_NULL_ASSERTION})

    def collect(self, ctx: ExtractionContext, decl: Declaration) -> Iterable[Fact]:
        facts: List[Fact] = []
        if decl.node is None:
            return facts
        for node in ctx.walk(decl.node):
            if node.type == "predefined_type" and ctx.text(node) == "any":
                # type arguments such as Record<string, any> are left alone
                context = ANY_CONTEXTS.get(node.parent.type) if node.parent is not None else None
                if context is None:
                    continue
                member = ctx.member_at(decl, node.start_byte)
                facts.append(self.fact(ctx, FactKind.ANY_TYPE, decl, node,
                                       member=member.name if member else None, context=context))
            elif node.type == "non_null_expression":
                member = ctx.member_at(decl, node.start_byte)
                facts.append(self.fact(ctx, FactKind.NON_NULL_ASSERTION, decl, node,
                                       member=member.name if member else None,
                                       expression=" ".join(ctx.text(node).split())[:60]))
        return facts
