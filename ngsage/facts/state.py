import re
from typing import Iterable, List, Optional, Set, Tuple

from tree_sitter import Node

from ngsage.analyzers.ast_models import Declaration, DeclarationKind, Member
from ngsage.facts.base import (
    BaseCollector,
    ExtractionContext,
    call_target,
    callback_arguments,
    function_parameters,
    unwind_chain,
)
from ngsage.facts.models import Fact, FactKind

PRIMITIVE_TYPES = {
    "string", "number", "boolean", "any", "unknown", "object", "never", "void",
    "null", "undefined", "bigint", "symbol", "Date",
}
WRAPPER_TYPES = {"Array", "ReadonlyArray", "Partial", "Readonly", "Record", "Map", "Set", "Observable", "Omit", "Pick"}
MUTATING_METHODS = {"push", "pop", "shift", "unshift", "splice", "sort", "reverse", "fill", "copyWithin"}
TIMER_CALLS = {"setInterval", "setTimeout", "requestAnimationFrame"}
SELECTOR_FACTORIES = {"createSelector", "createFeatureSelector", "createSelectorFactory"}
ARRAY_OPERATIONS = {
    "map", "filter", "reduce", "reduceRight", "sort", "flatMap", "find", "findIndex", "some", "every", "slice", "concat",
}
IDENTIFIER = re.compile(r"^[A-Za-z_$][\w$]*$")
ARRAY_TYPE = re.compile(r"^(?:([\w$]+)\[\]|(?:Readonly)?Array<\s*([\w$]+)\s*>)$")


def split_union(type_text: str) -> List[str]:
    """Splits a type on top-level `|`, dropping null and undefined."""
    parts = []
    depth = 0
    current = ""
    for char in type_text:
        if char in "<{([":
            depth += 1
        elif char in ">})]":
            depth -= 1
        if char == "|" and depth == 0:
            parts.append(current.strip())
            current = ""
            continue
        current += char
    parts.append(current.strip())
    return [p for p in parts if p and p not in ("null", "undefined")]


def is_state_declaration(decl: Declaration) -> bool:
    return decl.kind == DeclarationKind.INTERFACE and decl.name.endswith("State")


def is_selector_declaration(decl: Declaration) -> bool:
    if decl.node is None:
        return False
    return decl.kind == DeclarationKind.SELECTOR or (decl.kind == DeclarationKind.FUNCTION and decl.name.startswith("select"))


class StateCollector(BaseCollector):
    """Store state shapes and in-place mutations of state, inputs and parameters."""

    category = "state"
    produces = frozenset({
        FactKind.STATE_SHAPE,
        FactKind.STATE_FIELD,
        FactKind.STATE_REFERENCE,
        FactKind.PROPERTY_MUTATION,
        FactKind.SELECTOR_DECLARED,
    })

    def collect(self, ctx: ExtractionContext, decl: Declaration) -> Iterable[Fact]:
        facts: List[Fact] = []
        if is_state_declaration(decl):
            facts.extend(self._shape(ctx, decl))
        elif decl.kind != DeclarationKind.INTERFACE:
            facts.extend(self._mutations(ctx, decl))
        if is_selector_declaration(decl):
            facts.append(self._selector(ctx, decl))
        return facts

    # -- state shape --------------------------------------------------------

    def _shape(self, ctx: ExtractionContext, decl: Declaration) -> List[Fact]:
        depth = self._depth(decl.node) if decl.node is not None else 1
        facts = [self.fact(ctx, FactKind.STATE_SHAPE, decl, decl.range, state=decl.name, depth=depth)]

        arrays = {}
        for member in decl.members:
            element = self._element_type(member.declared_type)
            if element is not None or self._is_array(member.declared_type):
                arrays[member.name] = element

        for member in decl.members:
            type_text = member.declared_type or ""
            facts.append(self.fact(
                ctx,
                FactKind.STATE_FIELD,
                decl,
                member.range,
                member=member.name,
                state=decl.name,
                field=member.name,
                type=type_text,
                type_name=self._type_name(type_text),
                element_type=self._element_type(type_text),
                is_array=self._is_array(type_text),
                is_index_map=self._is_index_map(member),
                derived_from=self._derived_from(member.name, arrays),
            ))

        for member in decl.members:
            seen: Set[str] = set()
            for type_name, node in self._references(ctx, member):
                if type_name in seen:
                    continue
                seen.add(type_name)
                facts.append(self.fact(ctx, FactKind.STATE_REFERENCE, decl, node, member=member.name,
                                       state=decl.name, field=member.name, type_name=type_name))
        return facts

    def _depth(self, body: Node) -> int:
        deepest = 1
        stack = [(body, 1)]
        while stack:
            node, depth = stack.pop()
            deepest = max(deepest, depth)
            for child in node.children:
                stack.append((child, depth + 1 if child.type == "object_type" else depth))
        return deepest

    def _type_name(self, type_text: str) -> Optional[str]:
        parts = split_union(type_text)
        if len(parts) != 1 or not IDENTIFIER.match(parts[0]) or parts[0] in PRIMITIVE_TYPES:
            return None
        return parts[0]

    def _element_type(self, type_text: Optional[str]) -> Optional[str]:
        parts = split_union(type_text or "")
        if len(parts) != 1:
            return None
        match = ARRAY_TYPE.match(parts[0])
        if not match:
            return None
        element = match.group(1) or match.group(2)
        return None if element in PRIMITIVE_TYPES else element

    def _is_array(self, type_text: Optional[str]) -> bool:
        parts = split_union(type_text or "")
        return len(parts) == 1 and (parts[0].endswith("[]") or parts[0].split("<")[0] in ("Array", "ReadonlyArray"))

    def _is_index_map(self, member: Member) -> bool:
        type_text = (member.declared_type or "").strip()
        if type_text.startswith("Record<") or type_text.startswith("Map<"):
            return True
        return type_text.startswith("{") and re.match(r"^\{\s*\[", type_text) is not None

    def _derived_from(self, name: str, arrays) -> Optional[str]:
        candidates = []
        if name.endswith("Ids") and len(name) > 3:
            base = name[:-3]
            candidates += [base + "s", base + "es"]
        if name.startswith("total") and len(name) > 5:
            rest = name[5].lower() + name[6:]
            candidates += [rest]
        if name.endswith("Count") and len(name) > 5:
            base = name[:-5]
            candidates += [base, base + "s"]
        for candidate in candidates:
            if candidate in arrays and candidate != name:
                return candidate
        return None

    def _references(self, ctx: ExtractionContext, member: Member) -> Iterable[Tuple[str, Node]]:
        if member.node is None:
            return
        for node in ctx.walk(member.node):
            if node.type != "type_identifier":
                continue
            name = ctx.text(node)
            if name in WRAPPER_TYPES or name in PRIMITIVE_TYPES:
                continue
            ancestor = node.parent
            inside_map = False
            while ancestor is not None and ancestor != member.node:
                if ancestor.type == "index_signature":
                    inside_map = True
                    break
                ancestor = ancestor.parent
            if not inside_map:
                yield name, node

    # -- selectors ----------------------------------------------------------

    def _selector(self, ctx: ExtractionContext, decl: Declaration) -> Fact:
        calls = [n for n in ctx.walk(decl.node) if n.type == "call_expression"]
        memoized = any(call_target(ctx, call)[1] in SELECTOR_FACTORIES for call in calls)
        computes = any(
            (ctx.text(receiver) if receiver is not None else None) != "console"
            for receiver, _ in (call_target(ctx, call) for call in calls)
        )

        inputs = 0
        projection = None
        chained = 0
        if decl.kind == DeclarationKind.SELECTOR and decl.node.type == "call_expression":
            arguments = decl.node.child_by_field_name("arguments")
            args = [a for a in arguments.named_children if a.type != "comment"] if arguments is not None else []
            if len(args) > 1 and args[-1].type in ("arrow_function", "function_expression", "function"):
                projector = args[-1]
                inputs = len(args) - 1
                projection = self._projection(ctx, projector)
                chained = max((self._chain_length(ctx, n) for n in ctx.walk(projector) if n.type == "call_expression"), default=0)

        return self.fact(
            ctx,
            FactKind.SELECTOR_DECLARED,
            decl,
            decl.range,
            selector=decl.name,
            memoized=memoized,
            computes=computes,
            inputs=inputs,
            projection=projection,
            chained_operations=chained,
        )

    def _projection(self, ctx: ExtractionContext, projector: Node) -> str:
        """Classifies what a projector returns: `identity`, `passthrough` or `derived`."""
        params = set(function_parameters(ctx, projector))
        body = projector.child_by_field_name("body")
        if body is not None and body.type == "statement_block":
            returns = [c for c in body.named_children if c.type == "return_statement"]
            body = returns[-1].named_children[0] if returns and returns[-1].named_children else None
        while body is not None and body.type == "parenthesized_expression":
            body = body.named_children[0]
        if body is None:
            return "derived"
        if body.type == "identifier" and ctx.text(body) in params:
            return "identity"
        entries = [c for c in body.named_children if c.type != "comment"]
        if body.type == "object" and entries and all(
            (c.type == "shorthand_property_identifier" and ctx.text(c) in params)
            or (c.type == "pair" and ctx.text(c.child_by_field_name("value")) in params)
            for c in entries
        ):
            return "passthrough"
        return "derived"

    def _chain_length(self, ctx: ExtractionContext, call: Node) -> int:
        length = 0
        while call.type == "call_expression":
            function = call.child_by_field_name("function")
            if function is None or function.type != "member_expression":
                break
            prop = function.child_by_field_name("property")
            if prop is None or ctx.text(prop) not in ARRAY_OPERATIONS:
                break
            length += 1
            call = function.child_by_field_name("object")
        return length

    # -- mutations ----------------------------------------------------------

    def _mutations(self, ctx: ExtractionContext, decl: Declaration) -> List[Fact]:
        facts: List[Fact] = []
        inputs = {m.name for m in decl.members if "Input" in m.decorators}
        reducer_states = self._reducer_states(ctx, decl)
        for member_name, node in self.code_roots(decl):
            parameters: Set[str] = set()
            for child in ctx.walk(node):
                if child.type in ("arrow_function", "function_expression", "function_declaration", "method_definition", "function"):
                    parameters.update(function_parameters(ctx, child))
            roots = (reducer_states, inputs, parameters - reducer_states)
            self._visit(ctx, decl, member_name, node, roots, False, facts)
        return facts

    def _reducer_states(self, ctx: ExtractionContext, decl: Declaration) -> Set[str]:
        """Names bound to the incoming state in reducer callbacks."""
        names: Set[str] = set()
        if decl.node is None:
            return names
        if decl.kind == DeclarationKind.REDUCER:
            for node in ctx.walk(decl.node):
                if node.type == "call_expression" and call_target(ctx, node) == (None, "on"):
                    for callback in callback_arguments(node):
                        params = function_parameters(ctx, callback)
                        if params:
                            names.add(params[0])
        elif decl.kind == DeclarationKind.FUNCTION and decl.name.lower().endswith("reducer"):
            params = function_parameters(ctx, decl.node)
            if params:
                names.add(params[0])
        return names

    def _visit(self, ctx: ExtractionContext, decl: Declaration, member: Optional[str], node: Node,
               roots, in_timer: bool, facts: List[Fact]):
        target = None
        operation = None
        if node.type in ("assignment_expression", "augmented_assignment_expression"):
            target, operation = node.child_by_field_name("left"), "assign"
        elif node.type == "update_expression":
            target, operation = node.child_by_field_name("argument"), "update"
        elif node.type == "unary_expression" and node.child(0) is not None and node.child(0).type == "delete":
            target, operation = node.child_by_field_name("argument"), "delete"
        elif node.type == "call_expression":
            receiver, name = call_target(ctx, node)
            if name in MUTATING_METHODS and receiver is not None:
                target, operation = receiver, name
            elif name in TIMER_CALLS:
                for child in node.children:
                    self._visit(ctx, decl, member, child, roots, True, facts)
                return

        if target is not None:
            fact = self._mutation(ctx, decl, member, node, target, operation, roots, in_timer)
            if fact is not None:
                facts.append(fact)

        for child in node.children:
            self._visit(ctx, decl, member, child, roots, in_timer, facts)

    def _mutation(self, ctx: ExtractionContext, decl: Declaration, member: Optional[str], node: Node,
                  target: Node, operation: str, roots, in_timer: bool) -> Optional[Fact]:
        reducer_states, inputs, parameters = roots
        root, steps = unwind_chain(target)
        path = []
        for step in steps:
            prop = step.child_by_field_name("property")
            path.append(ctx.text(prop).lstrip("#") if step.type == "member_expression" and prop is not None else "[]")

        if root.type == "this":
            if not path:
                return None
            name, path = path[0], path[1:]
            root_kind = "input" if name in inputs else "field"
        elif root.type == "identifier":
            name = ctx.text(root)
            if name in reducer_states:
                root_kind = "reducer-state"
            elif name in parameters:
                root_kind = "parameter"
            else:
                return None
            # rebinding a parameter is not a mutation
            if not path and operation in ("assign", "update"):
                return None
        else:
            return None

        return self.fact(
            ctx,
            FactKind.PROPERTY_MUTATION,
            decl,
            node,
            member=member,
            root_kind=root_kind,
            root=name,
            path=".".join(path),
            hops=len(path),
            operation=operation,
            in_timer=in_timer,
        )
