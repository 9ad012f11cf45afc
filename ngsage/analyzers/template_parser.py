"""
Angular template front end.

Inline templates are parsed with tree-sitter-html. Angular's binding syntax
(`[prop]`, `(event)`, `[(model)]`, `*directive`) survives HTML tokenisation as
plain attribute names, so bindings are recovered from attributes, and
`{{ interpolations }}` plus `@if`/`@for` blocks are located by scanning the
template text outside comments.
"""
import re
from typing import List, Optional, Tuple

import tree_sitter_html as tshtml
from tree_sitter import Language, Parser

from ngsage.analyzers.ast_models import Binding, BindingKind
from ngsage.analyzers.base import BaseParser, LineIndex

HTML_LANGUAGE = Language(tshtml.language())

CONDITIONAL_DIRECTIVES = {"ngIf", "ngSwitchCase", "ngSwitchDefault", "@if", "@switch"}
LOOP_DIRECTIVES = {"ngFor", "ngForOf", "@for"}

INTERPOLATION_PATTERN = re.compile(r"\{\{(.*?)\}\}", re.DOTALL)
CONTROL_FLOW_PATTERN = re.compile(r"@(if|for|switch|defer)\s*\(")
PIPE_PATTERN = re.compile(r"(?<!\|)\|(?!\|)\s*([A-Za-z_$][\w$]*)")
CALL_PATTERN = re.compile(r"(?<![\w$.?])(new\s+)?([A-Za-z_$][\w$]*)\s*\(")
ROOT_PATTERN = re.compile(r"^[\s!(]*([A-Za-z_$][\w$]*)")
STRING_PATTERN = re.compile(r"'(?:\\.|[^'\\])*'|\"(?:\\.|[^\"\\])*\"")

TEMPLATE_KEYWORDS = {"let", "of", "as", "if", "else", "typeof", "track", "true", "false", "null", "undefined"}


def mask_strings(expression: str) -> str:
    """Blanks string literal contents, keeping offsets intact."""
    return STRING_PATTERN.sub(lambda m: m.group(0)[0] + " " * (len(m.group(0)) - 2) + m.group(0)[-1], expression)


def find_pipes(expression: str) -> List[Tuple[str, str, int]]:
    """Returns (pipe name, source operand, index) for every pipe application."""
    masked = mask_strings(expression)
    pipes = []
    for match in PIPE_PATTERN.finditer(masked):
        source = _operand_before(masked, match.start())
        pipes.append((match.group(1), expression[source[0]:source[1]].strip(), match.start()))
    return pipes


def find_calls(expression: str) -> List[Tuple[str, int, str]]:
    """Returns (callee, index, argument text) for calls whose callee is a bare identifier."""
    masked = mask_strings(_strip_pipes(expression))
    calls = []
    for match in CALL_PATTERN.finditer(masked):
        if match.group(1) or match.group(2) in TEMPLATE_KEYWORDS:
            continue
        close_index = _balanced_parens(masked, match.end() - 1)
        calls.append((match.group(2), match.start(2), expression[match.end():close_index].strip()))
    return calls


def root_identifier(expression: str) -> Optional[str]:
    match = ROOT_PATTERN.match(mask_strings(expression))
    if not match or match.group(1) in TEMPLATE_KEYWORDS:
        return None
    return match.group(1)


def parse_ng_for(expression: str) -> Tuple[Optional[str], bool]:
    """Splits `let x of xs; trackBy: fn` microsyntax into (iterable, has key function)."""
    iterable = None
    has_key = False
    for clause in re.split(r"[;,]", expression):
        clause = clause.strip()
        of_match = re.match(r"(?:let\s+)?[\w$]+\s+of\s+(.+)", clause)
        if of_match:
            iterable = of_match.group(1).strip()
        elif re.match(r"(trackBy|track)\b", clause):
            has_key = True
    return iterable, has_key


def _strip_pipes(expression: str) -> str:
    masked = mask_strings(expression)
    match = PIPE_PATTERN.search(masked)
    while match:
        # pipe arguments run until the next pipe or closing paren at this depth
        end = match.end()
        depth = 0
        while end < len(masked):
            char = masked[end]
            if char in "([{":
                depth += 1
            elif char in ")]}":
                if depth == 0:
                    break
                depth -= 1
            elif char == "|" and depth == 0:
                break
            end += 1
        masked = masked[:match.start()] + " " * (end - match.start()) + masked[end:]
        match = PIPE_PATTERN.search(masked)
    return masked


def _operand_before(masked: str, index: int) -> Tuple[int, int]:
    end = index
    while end > 0 and masked[end - 1].isspace():
        end -= 1
    start = end
    depth = 0
    while start > 0:
        char = masked[start - 1]
        if char in ")]":
            depth += 1
        elif char in "([":
            if depth == 0:
                break
            depth -= 1
        elif depth == 0 and not (char.isalnum() or char in "_$.?!"):
            break
        start -= 1
    return start, end


def _balanced_parens(text: str, open_index: int) -> int:
    depth = 0
    for i in range(open_index, len(text)):
        if text[i] == "(":
            depth += 1
        elif text[i] == ")":
            depth -= 1
            if depth == 0:
                return i
    return len(text)


class TemplateParser(BaseParser):
    language = "html"

    def __init__(self):
        super().__init__()
        self.parser = Parser(HTML_LANGUAGE)

    def _parse(self, source_code: bytes):
        return self.parser.parse(source_code)

    def extract_bindings(self, template: str, base_offset: int, lines: LineIndex) -> List[Binding]:
        """
        Parses an inline template and returns its bindings in document order.

        `base_offset` is the byte offset of the template text inside the owning
        unit and `lines` is that unit's line index, so binding ranges are
        absolute positions in the unit.
        """
        self.parse(template)
        self._base = base_offset
        self._unit_lines = lines
        self._elements: List[Tuple[int, int, str, List[int]]] = []
        self._bindings: List[Binding] = []

        comments = []
        self._visit(self.tree.root_node, [], comments)
        self._scan_text(template, comments)
        self._bindings.sort(key=lambda b: (b.range.start, b.kind != BindingKind.STRUCTURAL))
        return [b.model_copy(update={"index": i}) for i, b in enumerate(self._bindings)]

    def _visit(self, node, conditionals: List[int], comments: List[Tuple[int, int]]):
        if node.type == "comment":
            comments.append((node.start_byte, node.end_byte))
            return
        if node.type in ("element", "script_element", "style_element"):
            tag = node.child(0) if node.child_count else None
            index = len(self._elements)
            tag_name = ""
            attributes = []
            if tag is not None and tag.type in ("start_tag", "self_closing_tag"):
                for child in tag.named_children:
                    if child.type == "tag_name":
                        tag_name = self._text(child)
                    elif child.type == "attribute":
                        attributes.append(child)
            self._elements.append((node.start_byte, node.end_byte, tag_name, list(conditionals)))
            is_conditional = False
            for attribute in attributes:
                entry = self._attribute_binding(attribute, tag_name, index, conditionals)
                if entry is None:
                    continue
                self._add(entry)
                binding = entry[0]
                if binding.kind == BindingKind.STRUCTURAL and binding.name in CONDITIONAL_DIRECTIVES:
                    is_conditional = True
            inner = conditionals + [index] if is_conditional else conditionals
            for child in node.children:
                self._visit(child, inner, comments)
            return
        for child in node.children:
            self._visit(child, conditionals, comments)

    def _attribute_binding(self, attribute, tag_name: str, element_index: int, conditionals: List[int]) -> Optional[Tuple[Binding, int]]:
        name_node = None
        value_node = None
        for child in attribute.named_children:
            if child.type == "attribute_name":
                name_node = child
            elif child.type == "quoted_attribute_value":
                inner = [c for c in child.named_children if c.type == "attribute_value"]
                value_node = inner[0] if inner else None
            elif child.type == "attribute_value":
                value_node = child
        if name_node is None:
            return None
        raw_name = self._text(name_node)
        kind, name = self._classify_attribute(raw_name)
        if kind is None:
            return None
        expression = self._text(value_node) if value_node is not None else ""
        return Binding(
            index=0,
            kind=kind,
            name=name,
            expression=expression,
            element=tag_name,
            element_index=element_index,
            conditional_ancestors=list(conditionals),
            range=self._abs_range(attribute.start_byte, attribute.end_byte),
        ), value_node.start_byte if value_node is not None else attribute.end_byte

    def _classify_attribute(self, raw_name: str):
        if raw_name.startswith("*"):
            return BindingKind.STRUCTURAL, raw_name[1:]
        if raw_name.startswith("[(") and raw_name.endswith(")]"):
            return BindingKind.TWO_WAY, raw_name[2:-2]
        if raw_name.startswith("bindon-"):
            return BindingKind.TWO_WAY, raw_name[len("bindon-"):]
        if raw_name.startswith("[") and raw_name.endswith("]"):
            return BindingKind.PROPERTY, raw_name[1:-1]
        if raw_name.startswith("bind-"):
            return BindingKind.PROPERTY, raw_name[len("bind-"):]
        if raw_name.startswith("(") and raw_name.endswith(")"):
            return BindingKind.EVENT, raw_name[1:-1]
        if raw_name.startswith("on-"):
            return BindingKind.EVENT, raw_name[len("on-"):]
        return None, raw_name

    def _add(self, entry):
        binding, expression_start = entry
        self._bindings.append(binding)
        if binding.kind in (BindingKind.EVENT,):
            return
        for pipe, source, index in find_pipes(binding.expression):
            start = expression_start + len(binding.expression[:index].encode("utf8"))
            self._bindings.append(Binding(
                index=0,
                kind=BindingKind.PIPE,
                name=pipe,
                expression=source,
                element=binding.element,
                element_index=binding.element_index,
                conditional_ancestors=list(binding.conditional_ancestors),
                range=self._abs_range(start, start + 1),
            ))

    def _scan_text(self, template: str, comments: List[Tuple[int, int]]):
        for match in INTERPOLATION_PATTERN.finditer(template):
            start = len(template[:match.start()].encode("utf8"))
            end = len(template[:match.end()].encode("utf8"))
            if any(c_start <= start < c_end for c_start, c_end in comments):
                continue
            expr_start = len(template[:match.start(1)].encode("utf8"))
            self._add(self._text_binding(BindingKind.INTERPOLATION, "interpolation", match.group(1).strip(), start, end, expr_start))

        for match in CONTROL_FLOW_PATTERN.finditer(template):
            start = len(template[:match.start()].encode("utf8"))
            if any(c_start <= start < c_end for c_start, c_end in comments):
                continue
            open_index = match.end() - 1
            close_index = _balanced_parens(template, open_index)
            expression = template[open_index + 1:close_index].strip()
            end = len(template[:close_index + 1].encode("utf8"))
            expr_start = len(template[:open_index + 1].encode("utf8"))
            self._add(self._text_binding(BindingKind.STRUCTURAL, "@" + match.group(1), expression, start, end, expr_start))

    def _text_binding(self, kind: BindingKind, name: str, expression: str, start: int, end: int, expr_start: int):
        element_index, element, conditionals = self._owning_element(start)
        if element_index >= 0 and self._element_is_conditional(element_index):
            conditionals = conditionals + [element_index]
        binding = Binding(
            index=0,
            kind=kind,
            name=name,
            expression=expression,
            element=element,
            element_index=element_index,
            conditional_ancestors=conditionals,
            range=self._abs_range(start, end),
        )
        return binding, expr_start

    def _owning_element(self, offset: int):
        owner = (-1, "", [])
        for index, (start, end, tag, conditionals) in enumerate(self._elements):
            # elements are recorded in document order, so the last container wins
            if start <= offset < end:
                owner = (index, tag, list(conditionals))
        return owner

    def _element_is_conditional(self, element_index: int) -> bool:
        return any(
            b.element_index == element_index
            and b.kind == BindingKind.STRUCTURAL
            and b.name in CONDITIONAL_DIRECTIVES
            for b in self._bindings
        )

    def _abs_range(self, start: int, end: int):
        return self._unit_lines.range(self._base + start, self._base + end)
