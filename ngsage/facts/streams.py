from typing import Dict, Iterable, List, Optional

from tree_sitter import Node

from ngsage.analyzers.ast_models import Declaration, Member, MemberKind
from ngsage.facts.base import BaseCollector, ExtractionContext, call_target, callback_arguments, this_property
from ngsage.facts.models import Fact, FactKind

FLATTENING_OPERATORS = {"switchMap", "mergeMap", "concatMap", "exhaustMap", "flatMap"}
HTTP_VERBS = {"get", "post", "put", "patch", "delete", "head", "options", "request", "jsonp"}
READ_VERBS = {"get", "head", "options", "request", "jsonp"}
WRITE_PREFIXES = ("save", "create", "update", "delete", "remove", "add", "post", "put", "patch", "insert", "upsert")
SUBJECT_CLASSES = {"Subject", "BehaviorSubject", "ReplaySubject", "AsyncSubject"}
SHARING_OPERATORS = {"share", "shareReplay"}


def write_prefix(method: str) -> Optional[str]:
    """Returns the write verb a service method name starts with, e.g. `save` for `saveUser`."""
    for prefix in WRITE_PREFIXES:
        if method == prefix or (method.startswith(prefix) and method[len(prefix)].isupper()):
            return prefix
    return None


class StreamCollector(BaseCollector):
    """RxJS flattening operators, subjects and shared streams."""

    category = "stream"
    produces = frozenset({
        FactKind.FLATTENING_OPERATOR,
        FactKind.SUBJECT_DECLARED,
        FactKind.SUBJECT_EXPOSED,
        FactKind.STREAM_SHARED,
    })

    def collect(self, ctx: ExtractionContext, decl: Declaration) -> Iterable[Fact]:
        facts: List[Fact] = []
        subjects: Dict[str, str] = {}
        for member in decl.members_of_kind(MemberKind.PROPERTY):
            fact = self._subject(ctx, decl, member)
            if fact is not None:
                subjects[member.name] = fact.payload["subject_class"]
                facts.append(fact)
            if member.node is not None and self._shares(ctx, member.node.child_by_field_name("value")):
                facts.append(self.fact(ctx, FactKind.STREAM_SHARED, decl, member.range, member=member.name, field=member.name))

        for member_name, node in self.code_roots(decl):
            for child in ctx.walk(node):
                if child.type == "call_expression":
                    fact = self._flattening(ctx, decl, member_name, child)
                    if fact is not None:
                        facts.append(fact)
                elif child.type == "assignment_expression":
                    field = this_property(ctx, child.child_by_field_name("left"))
                    if field is not None and self._shares(ctx, child.child_by_field_name("right")):
                        facts.append(self.fact(ctx, FactKind.STREAM_SHARED, decl, child, member=member_name, field=field))
                elif child.type == "return_statement" and member_name is not None:
                    returned = child.named_children[0] if child.named_children else None
                    subject = this_property(ctx, returned)
                    if subject in subjects:
                        facts.append(self.fact(ctx, FactKind.SUBJECT_EXPOSED, decl, child, member=member_name,
                                               method=member_name, subject=subject))
        return facts

    def _subject(self, ctx: ExtractionContext, decl: Declaration, member: Member) -> Optional[Fact]:
        value = member.node.child_by_field_name("value") if member.node is not None else None
        if value is None or value.type != "new_expression":
            return None
        constructor = value.child_by_field_name("constructor")
        subject_class = ctx.text(constructor) if constructor is not None else ""
        if subject_class not in SUBJECT_CLASSES:
            return None
        arguments = value.child_by_field_name("arguments")
        args = [a for a in arguments.named_children if a.type != "comment"] if arguments is not None else []

        buffer = None
        if subject_class == "ReplaySubject" and args and args[0].type == "number":
            buffer = int(float(ctx.text(args[0])))
        initial = ctx.text(args[0]) if subject_class == "BehaviorSubject" and args else None

        modifiers = [ctx.text(c) for c in member.node.children if c.type == "accessibility_modifier"]
        return self.fact(
            ctx,
            FactKind.SUBJECT_DECLARED,
            decl,
            member.range,
            member=member.name,
            subject=member.name,
            subject_class=subject_class,
            accessibility=member.accessibility,
            exposure=modifiers[0] if modifiers else ("private" if member.accessibility == "private" else "implicit"),
            buffer=buffer,
            bounded=buffer is not None,
            initial=initial,
        )

    def _flattening(self, ctx: ExtractionContext, decl: Declaration, member: Optional[str], call: Node) -> Optional[Fact]:
        receiver, operator = call_target(ctx, call)
        if receiver is not None or operator not in FLATTENING_OPERATORS:
            return None
        verb = None
        for callback in callback_arguments(call):
            verb = self._first_verb(ctx, callback)
            if verb is not None:
                break
        return self.fact(
            ctx,
            FactKind.FLATTENING_OPERATOR,
            decl,
            call,
            member=member,
            operator=operator,
            verb=verb,
            mutating=verb is not None and verb not in READ_VERBS,
        )

    def _first_verb(self, ctx: ExtractionContext, callback: Node) -> Optional[str]:
        for node in ctx.walk(callback):
            if node.type != "call_expression":
                continue
            receiver, method = call_target(ctx, node)
            if receiver is None or method is None:
                continue
            target = ctx.text(receiver)
            if method in HTTP_VERBS and "http" in target.lower():
                return method
            if target.startswith("this.") and write_prefix(method):
                return write_prefix(method)
        return None

    def _shares(self, ctx: ExtractionContext, node: Optional[Node]) -> bool:
        if node is None:
            return False
        for child in ctx.walk(node):
            if child.type != "call_expression":
                continue
            receiver, name = call_target(ctx, child)
            if receiver is None and name in SHARING_OPERATORS:
                return True
        return False
