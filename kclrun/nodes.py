"""Syntax tree node types and the registry that creates them by type name."""

from __future__ import annotations

import json
from dataclasses import Field, dataclass, field, fields, is_dataclass
from typing import Any, Callable, ClassVar, Optional, TypeVar

__all__ = [
    "UnknownNodeTypeError",
    "Node",
    "Stmt",
    "Expr",
    "TypeNode",
    "CmdArgSpec",
    "CmdOverrideSpec",
    "Name",
    "TypeAliasStmt",
    "ExprStmt",
    "UnificationStmt",
    "AssignStmt",
    "AugAssignStmt",
    "AssertStmt",
    "IfStmt",
    "ImportStmt",
    "SchemaIndexSignature",
    "SchemaAttr",
    "SchemaStmt",
    "RuleStmt",
    "IfExpr",
    "UnaryExpr",
    "BinaryExpr",
    "SelectorExpr",
    "CallExpr",
    "ParenExpr",
    "QuantExpr",
    "ListExpr",
    "ListIfItemExpr",
    "ListComp",
    "StarredExpr",
    "DictComp",
    "ConfigIfEntryExpr",
    "CompClause",
    "SchemaExpr",
    "ConfigExpr",
    "ConfigEntry",
    "CheckExpr",
    "LambdaExpr",
    "Decorator",
    "Subscript",
    "Keyword",
    "Arguments",
    "Compare",
    "Identifier",
    "Literal",
    "NumberLit",
    "StringLit",
    "NameConstantLit",
    "JoinedString",
    "FormattedValue",
    "Comment",
    "CommentGroup",
    "Type",
    "BasicType",
    "ListType",
    "DictType",
    "LiteralType",
    "Module",
    "Program",
    "File",
    "type_names",
    "new_node",
]

AST_TYPE_KEY = "_ast_type"


class UnknownNodeTypeError(LookupError):
    """Raised when a node is requested for a type name that is not registered."""


def _f(json_name: str, *, default: Any = None,
       factory: Optional[Callable[[], Any]] = None, omitempty: bool = False) -> Any:
    metadata = {"json": json_name, "omitempty": omitempty}
    if factory is not None:
        return field(default_factory=factory, metadata=metadata)
    return field(default=default, metadata=metadata)


def _is_empty(value: Any) -> bool:
    if isinstance(value, (Node, bool)):
        return value is False
    if value is None:
        return True
    if isinstance(value, (str, list, tuple, dict, int, float)):
        return not value
    return False


def _to_json(value: Any) -> Any:
    if isinstance(value, Node):
        return value.json_map()
    if is_dataclass(value) and not isinstance(value, type):
        return _dataclass_json(value)
    if isinstance(value, (list, tuple)):
        return [_to_json(item) for item in value]
    if isinstance(value, dict):
        return {str(k): _to_json(value[k]) for k in sorted(value)}
    return value


def _dataclass_json(obj: Any) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for f in fields(obj):
        name = f.metadata.get("json")
        if name is None:
            continue
        value = getattr(obj, f.name)
        if f.metadata.get("omitempty") and _is_empty(value):
            continue
        result[name] = _to_json(value)
    return result


_NODE_TYPES: dict[str, type[Node]] = {}

_N = TypeVar("_N", bound="Node")


def _node(cls: type[_N]) -> type[_N]:
    cls = dataclass(kw_only=True)(cls)
    _NODE_TYPES[cls.__name__] = cls
    return cls


@dataclass(kw_only=True)
class Node:
    """Base of all syntax tree nodes; carries the position metadata."""

    ast_type: str = _f(AST_TYPE_KEY, default="", omitempty=True)
    filename: str = _f("filename", default="", omitempty=True)
    relative_filename: str = _f("relative_filename", default="")
    line: int = _f("line", default=0, omitempty=True)
    column: int = _f("column", default=0, omitempty=True)
    end_line: int = _f("end_line", default=0, omitempty=True)
    end_column: int = _f("end_column", default=0, omitempty=True)

    def __post_init__(self) -> None:
        if not self.ast_type:
            self.ast_type = self.node_type()

    def node_type(self) -> str:
        """The registered type name of this node."""
        return type(self).__name__

    def position(self) -> tuple[int, int]:
        """The (line, column) where the node starts."""
        return self.line, self.column

    def json_map(self) -> dict[str, Any]:
        """The node as a JSON-compatible dict keyed by the wire field names."""
        return _dataclass_json(self)

    def json_string(self) -> str:
        """The node as indented JSON text."""
        return json.dumps(self.json_map(), indent=4, ensure_ascii=False)

    @classmethod
    def _json_fields(cls) -> dict[str, Field]:
        return {f.metadata["json"]: f for f in fields(cls) if "json" in f.metadata}


class Stmt(Node):
    """A statement node."""


class Expr(Node):
    """An expression node."""


class TypeNode(Node):
    """A type annotation node."""


@dataclass(kw_only=True)
class CmdArgSpec:
    """A top-level argument given on the command line (-D name=value)."""

    name: str = _f("name", default="")


@dataclass(kw_only=True)
class CmdOverrideSpec:
    """An override given on the command line (-O pkgpath:path.to.field=value)."""

    pkgpath: str = _f("value", default="")
    field_path: str = _f("field_path", default="")
    field_value: str = _f("field_value", default="")


@_node
class Name(Node):
    value: str = _f("value", default="")


@_node
class TypeAliasStmt(Stmt):
    type_name: str = _f("type_name", default="")
    type_value: Optional[Type] = _f("type_value")


@_node
class ExprStmt(Stmt):
    exprs: list[Expr] = _f("exprs", factory=list)


@_node
class UnificationStmt(Stmt):
    target: Optional[Identifier] = _f("target")
    value: Optional[SchemaExpr] = _f("value")


@_node
class AssignStmt(Stmt):
    targets: list[Identifier] = _f("targets", factory=list)
    value: Optional[Expr] = _f("value")
    type_annotation: str = _f("type_annotation", default="")
    type_annotation_node: Optional[Type] = _f("type_annotation_node")


@_node
class AugAssignStmt(Stmt):
    op: str = _f("op", default="")
    target: Optional[Identifier] = _f("target")
    value: Optional[Expr] = _f("value")


@_node
class AssertStmt(Stmt):
    test: Optional[Expr] = _f("test")
    if_cond: Optional[Expr] = _f("if_cond")
    msg: Optional[Expr] = _f("msg")


@_node
class IfStmt(Stmt):
    cond: Optional[Expr] = _f("cond")
    body: list[Stmt] = _f("body", factory=list)
    elif_cond: list[Expr] = _f("elif_cond", factory=list)
    elif_body: list[list[Stmt]] = _f("elif_body", factory=list)
    else_body: list[Stmt] = _f("else_body", factory=list)


@_node
class ImportStmt(Stmt):
    path: str = _f("path", default="")
    name: str = _f("name", default="")
    asname: str = _f("asname", default="")
    path_nodes: list[Name] = _f("path_nodes", factory=list, omitempty=True)
    as_name_node: Optional[Name] = _f("as_name_node", omitempty=True)
    rawpath: str = _f("rawpath", default="")


@_node
class SchemaIndexSignature(Stmt):
    key_name: str = _f("key_name", default="")
    key_type: str = _f("key_type", default="")
    value_type: str = _f("value_type", default="")
    value: Optional[Expr] = _f("value")
    any_other: bool = _f("any_other", default=False)
    name_node: Optional[Name] = _f("name_node", omitempty=True)
    value_type_node: Optional[Type] = _f("value_type_node")


@_node
class SchemaAttr(Stmt):
    doc: str = _f("doc", default="")
    name: str = _f("name", default="")
    type_str: str = _f("type_str", default="")
    op: str = _f("op", default="")
    value: Optional[Expr] = _f("value")
    is_final: bool = _f("is_final", default=False)
    is_optional: bool = _f("is_optional", default=False)
    decorators: list[Decorator] = _f("decorators", factory=list)
    name_node: Optional[Name] = _f("name_node", omitempty=True)
    type_node: Optional[Type] = _f("type_node", omitempty=True)


@_node
class SchemaStmt(Stmt):
    doc: str = _f("doc", default="")
    name: str = _f("name", default="")
    parent_name: Optional[Identifier] = _f("parent_name")
    for_host_name: Optional[Identifier] = _f("for_host_name")
    is_relaxed: bool = _f("is_relaxed", default=False)
    is_mixin: bool = _f("is_mixin", default=False)
    is_protocol: bool = _f("is_protocol", default=False)
    args: Optional[Arguments] = _f("args")
    mixins: list[Identifier] = _f("mixins", factory=list)
    body: list[Stmt] = _f("body", factory=list)
    decorators: list[Decorator] = _f("decorators", factory=list)
    checks: list[CheckExpr] = _f("checks", factory=list)
    index_signature: Optional[SchemaIndexSignature] = _f("index_signature")
    name_node: Optional[Name] = _f("name_node", omitempty=True)


@_node
class RuleStmt(Stmt):
    doc: str = _f("doc", default="")
    name: str = _f("name", default="")
    parent_rules: list[Identifier] = _f("parent_rules", factory=list)
    decorators: list[Decorator] = _f("decorators", factory=list)
    checks: list[CheckExpr] = _f("checks", factory=list)
    name_node: Optional[Name] = _f("name_node", omitempty=True)
    args: Optional[Arguments] = _f("args")
    for_host_name: Optional[Identifier] = _f("for_host_name")


@_node
class IfExpr(Expr):
    body: Optional[Expr] = _f("body")
    cond: Optional[Expr] = _f("cond")
    orelse: Optional[Expr] = _f("orelse")


@_node
class UnaryExpr(Expr):
    op: str = _f("op", default="")
    operand: Optional[Expr] = _f("operand")


@_node
class BinaryExpr(Expr):
    left: Optional[Expr] = _f("left")
    op: str = _f("op", default="")
    right: Optional[Expr] = _f("right")


@_node
class SelectorExpr(Expr):
    value: Optional[Expr] = _f("value")
    attr: Optional[Identifier] = _f("attr")
    ctx: str = _f("ctx", default="")
    has_question: bool = _f("has_question", default=False)


@_node
class CallExpr(Expr):
    func: Optional[Expr] = _f("func")
    args: list[Expr] = _f("args", factory=list)
    keywords: list[Keyword] = _f("keywords", factory=list)


@_node
class ParenExpr(Expr):
    expr: Optional[Expr] = _f("expr")


@_node
class QuantExpr(Expr):
    target: Optional[Expr] = _f("target")
    variables: list[Identifier] = _f("variables", factory=list)
    op: int = _f("op", default=0)
    check_test: Optional[Expr] = _f("check_test")
    if_cond: Optional[Expr] = _f("if_cond")
    ctx: str = _f("ctx", default="")


@_node
class ListExpr(Expr):
    elts: list[Expr] = _f("elts", factory=list)
    ctx: str = _f("ctx", default="")


@_node
class ListIfItemExpr(Expr):
    if_cond: Optional[Expr] = _f("if_cond")
    exprs: list[Expr] = _f("exprs", factory=list)
    orelse: Optional[Expr] = _f("orelse")


@_node
class ListComp(Expr):
    elt: Optional[Expr] = _f("elt")
    generators: list[CompClause] = _f("generators", factory=list)


@_node
class StarredExpr(Expr):
    value: Optional[Expr] = _f("value")
    ctx: str = _f("ctx", default="")


@_node
class DictComp(Expr):
    key: Optional[Expr] = _f("key")
    value: Optional[Expr] = _f("value")
    generators: list[CompClause] = _f("generators", factory=list)


@_node
class ConfigIfEntryExpr(Expr):
    if_cond: Optional[Expr] = _f("if_cond")
    keys: list[Expr] = _f("keys", factory=list)
    values: list[Expr] = _f("values", factory=list)
    operations: list[int] = _f("operations", factory=list)
    orelse: Optional[Expr] = _f("orelse")


@_node
class CompClause(Expr):
    targets: list[Identifier] = _f("targets", factory=list)
    iter: Optional[Expr] = _f("iter")
    ifs: list[Expr] = _f("ifs", factory=list)


@_node
class SchemaExpr(Expr):
    name: Optional[Identifier] = _f("name")
    args: list[Expr] = _f("args", factory=list)
    kwargs: list[Keyword] = _f("kwargs", factory=list)
    config: Optional[ConfigExpr] = _f("config")


@_node
class ConfigExpr(Expr):
    items: list[ConfigEntry] = _f("items", factory=list)


@_node
class ConfigEntry(Node):
    key: Optional[Expr] = _f("key")
    value: Optional[Expr] = _f("value")
    operation: int = _f("operation", default=0)
    insert_index: int = _f("insert_index", default=0)


@_node
class CheckExpr(Expr):
    check_test: Optional[Expr] = _f("check_test")
    if_cond: Optional[Expr] = _f("if_cond")
    msg: Optional[Expr] = _f("msg")


@_node
class LambdaExpr(Expr):
    args: Optional[Arguments] = _f("args")
    return_type_str: str = _f("return_type_str", default="")
    return_type_node: Optional[Type] = _f("return_type_node")
    body: list[Stmt] = _f("body", factory=list)


@_node
class Decorator(Node):
    name: Optional[Identifier] = _f("name")
    args: Optional[CallExpr] = _f("args")


@_node
class Subscript(Expr):
    value: Optional[Expr] = _f("value")
    index: Optional[Expr] = _f("index")
    lower: Optional[Expr] = _f("lower")
    upper: Optional[Expr] = _f("upper")
    step: Optional[Expr] = _f("step")
    ctx: str = _f("ctx", default="")
    has_question: bool = _f("has_question", default=False)


@_node
class Keyword(Expr):
    arg: Optional[Identifier] = _f("arg")
    value: Optional[Expr] = _f("value")


@_node
class Arguments(Expr):
    args: list[Identifier] = _f("args", factory=list)
    defaults: list[Optional[Expr]] = _f("defaults", factory=list)
    type_annotation_list: list[str] = _f(
        "type_annotation_list", factory=list, omitempty=True)
    type_annotation_node_list: list[Optional[Type]] = _f(
        "type_annotation_node_list", factory=list, omitempty=True)


@_node
class Compare(Expr):
    left: Optional[Expr] = _f("left")
    ops: list[str] = _f("ops", factory=list)
    comparators: list[Expr] = _f("comparators", factory=list)


@_node
class Identifier(Expr):
    names: list[str] = _f("names", factory=list)
    pkgpath: str = _f("pkgpath", default="")
    ctx: str = _f("ctx", default="")
    name_nodes: list[Name] = _f("name_nodes", factory=list, omitempty=True)


@_node
class Literal(Expr):
    value: Any = _f("value")


@_node
class NumberLit(Expr):
    value: float = _f("value", default=0.0)
    binary_suffix: str = _f("binary_suffix", default="")


@_node
class StringLit(Expr):
    value: str = _f("value", default="")
    is_long_string: bool = _f("is_long_string", default=False)
    raw_value: str = _f("raw_value", default="")


@_node
class NameConstantLit(Expr):
    value: str = _f("value", default="")


@_node
class JoinedString(Expr):
    is_long_string: bool = _f("is_long_string", default=False)
    values: list[Expr] = _f("values", factory=list)
    raw_value: str = _f("raw_value", default="")


@_node
class FormattedValue(Expr):
    is_long_string: bool = _f("is_long_string", default=False)
    value: Optional[Expr] = _f("value")
    format_spec: str = _f("format_spec", default="")


@_node
class Comment(Node):
    text: str = _f("text", default="")


@_node
class CommentGroup(Node):
    comments: list[Comment] = _f("comments", factory=list)


@_node
class Type(TypeNode):
    type_elements: list[TypeNode] = _f("type_elements", factory=list, omitempty=True)
    plain_type_str: str = _f("plain_type_str", default="")


@_node
class BasicType(TypeNode):
    type_elements: list[TypeNode] = _f("type_elements", factory=list, omitempty=True)
    type_name: str = _f("type_name", default="")


@_node
class ListType(TypeNode):
    inner_type: Optional[TypeNode] = _f("inner_type")
    plain_type_str: str = _f("plain_type_str", default="")


@_node
class DictType(TypeNode):
    key_type: Optional[TypeNode] = _f("key_type")
    value_type: Optional[TypeNode] = _f("value_type")
    plain_type_str: str = _f("plain_type_str", default="")


@_node
class LiteralType(TypeNode):
    plain_value: str = _f("plain_value", default="")
    value_type: str = _f("value_type", default="")
    string_value: Optional[StringLit] = _f("string_value")
    number_value: Optional[NumberLit] = _f("number_value")


@_node
class Module(Node):
    pkg: str = _f("pkg", default="")
    body: list[Stmt] = _f("body", factory=list)
    doc: str = _f("doc", default="")
    name: str = _f("name", default="")
    global_names: list[str] = _f("global_names", factory=list)
    local_names: dict[str, list[str]] = _f("local_names", factory=dict)
    comments: list[Comment] = _f("comments", factory=list)


@dataclass(kw_only=True)
class Program:
    """A whole program: its root, main package and the modules of every package."""

    root: str = _f("root", default="")
    main: str = _f("main", default="")
    pkgs: dict[str, list[Module]] = _f("pkgs", factory=dict)
    cmd_args: list[CmdArgSpec] = _f("cmd_args", factory=list)
    cmd_overrides: list[CmdOverrideSpec] = _f("cmd_overrides", factory=list)


@dataclass(kw_only=True)
class File:
    """A parsed file: the raw JSON tree and the decoded module."""

    json: str = ""
    module: Optional[Module] = None


def type_names() -> list[str]:
    """All registered node type names, sorted."""
    return sorted(_NODE_TYPES)


def new_node(type_name: str) -> Node:
    """Create an empty node of the given registered type."""
    try:
        cls = _NODE_TYPES[type_name]
    except KeyError:
        raise UnknownNodeTypeError(f"unknown node type {type_name!r}") from None
    return cls()