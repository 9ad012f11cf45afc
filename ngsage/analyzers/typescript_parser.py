from typing import Dict, List, Optional

import tree_sitter_typescript as tsts
from tree_sitter import Language, Node, Parser

from ngsage.analyzers.ast_models import (
    Declaration,
    DeclarationKind,
    Member,
    MemberKind,
    SourceUnit,
)
from ngsage.analyzers.base import BaseParser
from ngsage.analyzers.template_parser import TemplateParser
from ngsage.errors import MalformedSource

TYPESCRIPT_LANGUAGE = Language(tsts.language_typescript())

CLASS_DECORATOR_KINDS = {
    "Component": DeclarationKind.COMPONENT,
    "Directive": DeclarationKind.DIRECTIVE,
    "Injectable": DeclarationKind.SERVICE,
    "Pipe": DeclarationKind.PIPE,
    "NgModule": DeclarationKind.MODULE,
}

FACTORY_KINDS = {
    "createReducer": DeclarationKind.REDUCER,
    "createSelector": DeclarationKind.SELECTOR,
    "createFeatureSelector": DeclarationKind.SELECTOR,
}

GUARD_INTERFACES = {"CanActivate", "CanActivateChild", "CanDeactivate", "CanMatch", "CanLoad", "Resolve"}
GUARD_FN_TYPES = {"CanActivateFn", "CanActivateChildFn", "CanDeactivateFn", "CanMatchFn", "ResolveFn"}

CLASS_NODES = {"class_declaration", "abstract_class_declaration"}
FUNCTION_VALUES = {"arrow_function", "function_expression", "function"}


class TypeScriptParser(BaseParser):
    """Builds the Source Model for one TypeScript unit."""

    language = "typescript"

    def __init__(self):
        super().__init__()
        self.parser = Parser(TYPESCRIPT_LANGUAGE)
        self._templates = TemplateParser()

    def _parse(self, source_code: bytes):
        return self.parser.parse(source_code)

    def build_unit(self, path: str, text: str, file_kind: str = "other") -> SourceUnit:
        """
        Parses `text` and returns its SourceUnit.

        Raises:
            MalformedSource: if the parse tree contains errors. No partial unit
                is returned in that case.
        """
        self.parse(text)
        error = self.first_error()
        if error is not None:
            line, column = self._lines.position(error.start_byte)
            snippet = self._text(error).strip().splitlines()
            detail = f"unexpected '{snippet[0][:40]}'" if snippet else f"missing {error.type}"
            raise MalformedSource(path, line, column, detail)

        return SourceUnit(
            path=path,
            text=text,
            file_kind=file_kind,
            imports=self.extract_imports(),
            declarations=self.extract_declarations(),
            tree=self.tree,
            source=self._source,
        )

    def extract_imports(self) -> List[str]:
        imports = []
        if not self.tree:
            return imports
        for statement in self.tree.root_node.named_children:
            if statement.type != "import_statement":
                continue
            source = statement.child_by_field_name("source")
            if source is not None:
                imports.append(self._text(source).strip("'\"`"))
        return imports

    def extract_declarations(self) -> List[Declaration]:
        declarations: List[Declaration] = []
        if not self.tree:
            return declarations

        for statement in self.tree.root_node.named_children:
            outer_decorators: List[Node] = []
            node = statement
            if statement.type == "export_statement":
                outer_decorators = [c for c in statement.named_children if c.type == "decorator"]
                node = statement.child_by_field_name("declaration")
                if node is None:
                    continue

            if node.type in CLASS_NODES:
                declarations.append(self._build_class(node, outer_decorators, statement))
            elif node.type in ("lexical_declaration", "variable_declaration"):
                for declarator in node.named_children:
                    if declarator.type != "variable_declarator":
                        continue
                    decl = self._build_variable(declarator, statement)
                    if decl is not None:
                        declarations.append(decl)
            elif node.type == "function_declaration":
                declarations.append(self._build_function(node, statement))
            elif node.type == "interface_declaration":
                declarations.append(self._build_interface(node, node.child_by_field_name("body"), statement))
            elif node.type == "type_alias_declaration":
                value = node.child_by_field_name("value")
                if value is not None and value.type == "object_type":
                    declarations.append(self._build_interface(node, value, statement))

        return declarations

    def _build_class(self, node: Node, outer_decorators: List[Node], statement: Node) -> Declaration:
        name_node = node.child_by_field_name("name")
        name = self._text(name_node) if name_node else "<anonymous>"
        decorators = outer_decorators + [c for c in node.children if c.type == "decorator"]

        kind = DeclarationKind.CLASS
        decorator_name = None
        metadata: Dict[str, str] = {}
        template_node = None
        for decorator in decorators:
            dec_name, args = self._decorator(decorator)
            if dec_name in CLASS_DECORATOR_KINDS:
                kind = CLASS_DECORATOR_KINDS[dec_name]
                decorator_name = dec_name
                if args and args[0].type == "object":
                    metadata, template_node = self._object_metadata(args[0])
                break

        heritage = []
        for child in node.named_children:
            if child.type == "class_heritage":
                heritage = [self._text(n) for n in self._descendants(child, "type_identifier", "identifier")]

        members = self._class_members(node.child_by_field_name("body"))

        if kind == DeclarationKind.SERVICE and any(
            m.initializer and m.initializer.startswith("createEffect(") for m in members
        ):
            kind = DeclarationKind.EFFECT_BLOCK
        elif kind == DeclarationKind.CLASS and GUARD_INTERFACES.intersection(heritage):
            kind = DeclarationKind.GUARD

        decl = Declaration(
            id=self._decl_id(name, statement),
            kind=kind,
            name=name,
            range=self._range(statement),
            decorator=decorator_name,
            metadata=metadata,
            heritage=heritage,
            members=members,
            node=node,
        )
        if template_node is not None and kind in (DeclarationKind.COMPONENT, DeclarationKind.DIRECTIVE):
            start = template_node.start_byte + 1
            end = max(start, template_node.end_byte - 1)
            template = self._source[start:end].decode("utf8")
            decl.bindings = self._templates.extract_bindings(template, start, self._lines)
            decl.template_range = self._lines.range(start, end)
        return decl

    def _build_variable(self, declarator: Node, statement: Node) -> Optional[Declaration]:
        name_node = declarator.child_by_field_name("name")
        value = declarator.child_by_field_name("value")
        if name_node is None or value is None or name_node.type != "identifier":
            return None
        name = self._text(name_node)
        type_node = declarator.child_by_field_name("type")
        type_text = self._type_text(type_node)

        kind = None
        if value.type == "call_expression":
            callee = value.child_by_field_name("function")
            if callee is not None:
                kind = FACTORY_KINDS.get(self._text(callee))
        if kind is None and type_text and type_text.split("<")[0].strip() in GUARD_FN_TYPES:
            kind = DeclarationKind.GUARD
        if kind is None and value.type in FUNCTION_VALUES:
            kind = DeclarationKind.FUNCTION
        if kind is None:
            return None

        return Declaration(
            id=self._decl_id(name, statement),
            kind=kind,
            name=name,
            range=self._range(statement),
            node=value,
        )

    def _build_function(self, node: Node, statement: Node) -> Declaration:
        name_node = node.child_by_field_name("name")
        name = self._text(name_node) if name_node else "<anonymous>"
        return Declaration(
            id=self._decl_id(name, statement),
            kind=DeclarationKind.FUNCTION,
            name=name,
            range=self._range(statement),
            node=node,
        )

    def _build_interface(self, node: Node, body: Optional[Node], statement: Node) -> Declaration:
        name = self._text(node.child_by_field_name("name"))
        members = []
        if body is not None:
            for child in body.named_children:
                if child.type != "property_signature":
                    continue
                member_name = child.child_by_field_name("name")
                members.append(Member(
                    name=self._text(member_name),
                    kind=MemberKind.PROPERTY_SIGNATURE,
                    declared_type=self._type_text(child.child_by_field_name("type")),
                    range=self._range(child),
                    node=child,
                ))
        return Declaration(
            id=self._decl_id(name, statement),
            kind=DeclarationKind.INTERFACE,
            name=name,
            range=self._range(statement),
            members=members,
            node=body,
        )

    def _class_members(self, body: Optional[Node]) -> List[Member]:
        members: List[Member] = []
        if body is None:
            return members
        pending: List[Node] = []
        for child in body.named_children:
            if child.type == "decorator":
                pending.append(child)
                continue
            if child.type == "public_field_definition":
                decorators = pending + [c for c in child.children if c.type == "decorator"]
                members.append(self._field_member(child, decorators))
            elif child.type in ("method_definition", "method_signature", "abstract_method_signature"):
                decorators = pending + [c for c in child.children if c.type == "decorator"]
                members.extend(self._method_members(child, decorators))
            pending = []
        return members

    def _field_member(self, node: Node, decorators: List[Node]) -> Member:
        name_node = node.child_by_field_name("name")
        value = node.child_by_field_name("value")
        accessibility, is_static, is_readonly = self._modifiers(node, name_node)
        return Member(
            name=self._text(name_node).lstrip("#"),
            kind=MemberKind.PROPERTY,
            declared_type=self._type_text(node.child_by_field_name("type")),
            initializer=self._text(value) if value is not None else None,
            accessibility=accessibility,
            is_static=is_static,
            is_readonly=is_readonly,
            decorators=self._decorator_map(decorators),
            range=self._range(node),
            node=node,
        )

    def _method_members(self, node: Node, decorators: List[Node]) -> List[Member]:
        name_node = node.child_by_field_name("name")
        name = self._text(name_node).lstrip("#")
        accessibility, is_static, _ = self._modifiers(node, name_node)
        params_node = node.child_by_field_name("parameters")
        parameters = []
        parameter_properties = []
        if params_node is not None:
            for param in params_node.named_children:
                if param.type not in ("required_parameter", "optional_parameter"):
                    continue
                pattern = param.child_by_field_name("pattern")
                if pattern is None:
                    continue
                parameters.append(self._text(pattern))
                modifiers = [c for c in param.children if c.type in ("accessibility_modifier", "readonly")]
                if name == "constructor" and modifiers:
                    access = next((self._text(c) for c in modifiers if c.type == "accessibility_modifier"), "public")
                    parameter_properties.append(Member(
                        name=self._text(pattern),
                        kind=MemberKind.PARAMETER_PROPERTY,
                        declared_type=self._type_text(param.child_by_field_name("type")),
                        accessibility=access,
                        is_readonly=any(c.type == "readonly" for c in modifiers),
                        decorators=self._decorator_map([c for c in param.children if c.type == "decorator"]),
                        range=self._range(param),
                        node=param,
                    ))

        if name == "constructor":
            kind = MemberKind.CONSTRUCTOR
        elif any(c.type in ("get", "set") for c in node.children[: node.children.index(name_node)]):
            kind = MemberKind.ACCESSOR
        else:
            kind = MemberKind.METHOD

        method = Member(
            name=name,
            kind=kind,
            declared_type=self._type_text(node.child_by_field_name("return_type")),
            accessibility=accessibility,
            is_static=is_static,
            decorators=self._decorator_map(decorators),
            parameters=parameters,
            range=self._range(node),
            node=node,
        )
        return parameter_properties + [method]

    def _modifiers(self, node: Node, name_node: Optional[Node]):
        accessibility = "public"
        is_static = False
        is_readonly = False
        for child in node.children:
            if child == name_node:
                break
            if child.type == "accessibility_modifier":
                accessibility = self._text(child)
            elif child.type == "static":
                is_static = True
            elif child.type == "readonly":
                is_readonly = True
        if name_node is not None and name_node.type == "private_property_identifier":
            accessibility = "private"
        return accessibility, is_static, is_readonly

    def _decorator(self, decorator: Node):
        expression = decorator.named_children[0] if decorator.named_children else None
        if expression is None:
            return "", []
        if expression.type == "call_expression":
            callee = expression.child_by_field_name("function")
            arguments = expression.child_by_field_name("arguments")
            args = [a for a in arguments.named_children if a.type != "comment"] if arguments else []
            return self._text(callee).split(".")[-1], args
        return self._text(expression).split(".")[-1], []

    def _decorator_map(self, decorators: List[Node]) -> Dict[str, List[str]]:
        result: Dict[str, List[str]] = {}
        for decorator in decorators:
            name, args = self._decorator(decorator)
            if name:
                result[name] = [self._text(a) for a in args]
        return result

    def _object_metadata(self, obj: Node):
        metadata: Dict[str, str] = {}
        template_node = None
        for pair in obj.named_children:
            if pair.type != "pair":
                continue
            key = pair.child_by_field_name("key")
            value = pair.child_by_field_name("value")
            if key is None or value is None:
                continue
            key_text = self._text(key).strip("'\"")
            metadata[key_text] = self._text(value)
            if key_text == "template" and value.type in ("template_string", "string"):
                template_node = value
        return metadata, template_node

    def _type_text(self, annotation: Optional[Node]) -> Optional[str]:
        if annotation is None:
            return None
        if annotation.type == "type_annotation" and annotation.named_children:
            return self._text(annotation.named_children[0])
        return self._text(annotation).lstrip(":").strip()

    def _decl_id(self, name: str, statement: Node) -> str:
        return f"{name}:{statement.start_point[0] + 1}"
