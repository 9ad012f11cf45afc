from typing import Iterable, List

from ngsage.analyzers.ast_models import Declaration, DeclarationKind, MemberKind
from ngsage.facts.base import BaseCollector, ExtractionContext
from ngsage.facts.models import Fact, FactKind

PROVIDER_KEYS = ("useClass", "useExisting")


class DeclarationCollector(BaseCollector):
    """Declarations, their members and the providers they register."""

    category = "declaration"
    produces = frozenset({
        FactKind.DECLARATION_FOUND,
        FactKind.MEMBER_DECLARED,
        FactKind.PROVIDER_REGISTERED,
        FactKind.ENTITY_DECLARED,
    })

    def collect(self, ctx: ExtractionContext, decl: Declaration) -> Iterable[Fact]:
        facts: List[Fact] = [self.fact(
            ctx,
            FactKind.DECLARATION_FOUND,
            decl,
            decl.range,
            kind=decl.kind.value,
            name=decl.name,
            decorator=decl.decorator,
            provided_in=decl.metadata.get("providedIn", "").strip("'\"`") or None,
            standalone=decl.metadata.get("standalone") == "true",
        )]

        for member in decl.members:
            facts.append(self.fact(
                ctx,
                FactKind.MEMBER_DECLARED,
                decl,
                member.range,
                member=member.name,
                member_kind=member.kind.value,
                type=member.declared_type,
                accessibility=member.accessibility,
                decorators=sorted(member.decorators),
                is_static=member.is_static,
            ))

        providers = ctx.decorator_property(decl, "providers")
        if providers is not None and providers.type == "array":
            for item in providers.named_children:
                provider = self._provider_name(ctx, item)
                if provider:
                    facts.append(self.fact(ctx, FactKind.PROVIDER_REGISTERED, decl, item, provider=provider))

        if decl.kind == DeclarationKind.INTERFACE and any(
            m.name == "id" and m.kind == MemberKind.PROPERTY_SIGNATURE for m in decl.members
        ):
            facts.append(self.fact(ctx, FactKind.ENTITY_DECLARED, decl, decl.range, name=decl.name))
        return facts

    def _provider_name(self, ctx: ExtractionContext, item):
        if item.type == "identifier":
            return ctx.text(item)
        if item.type != "object":
            return None
        # { provide: X, useClass: Y } registers Y under X
        provide = None
        for pair in item.named_children:
            if pair.type != "pair":
                continue
            key = ctx.text(pair.child_by_field_name("key"))
            value = pair.child_by_field_name("value")
            if value is None or value.type != "identifier":
                continue
            if key in PROVIDER_KEYS:
                return ctx.text(value)
            if key == "provide":
                provide = ctx.text(value)
        return provide
