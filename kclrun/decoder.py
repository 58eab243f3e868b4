"""Decoding of JSON syntax trees into node objects, and JSON helpers."""

from __future__ import annotations

import json
import types
from dataclasses import fields, is_dataclass
from pathlib import Path
from typing import Any, Union, get_args, get_origin

from . import nodes as _nodes
from .nodes import AST_TYPE_KEY, Module, Node, UnknownNodeTypeError, new_node

__all__ = [
    "DecodeError",
    "read_source",
    "load_json",
    "decode_module",
    "json_map",
    "json_string",
]


class DecodeError(ValueError):
    """Raised when JSON text cannot be turned into the expected structure."""


def read_source(filename: str | Path, src: Any = None) -> bytes:
    """Return the raw bytes of src, or of the file named filename when src is None."""
    if src is None:
        return Path(filename).read_bytes()
    if isinstance(src, (bytes, bytearray)):
        return bytes(src)
    if isinstance(src, str):
        return src.encode("utf-8")
    if hasattr(src, "read"):
        data = src.read()
        return data.encode("utf-8") if isinstance(data, str) else bytes(data)
    raise TypeError(f"unsupported src type: {type(src).__name__}")


def _decode_object(data: bytes | str) -> dict[str, Any]:
    try:
        value = json.loads(data)
    except ValueError as exc:
        raise DecodeError(f"invalid JSON: {exc}") from exc
    if not isinstance(value, dict):
        raise DecodeError(f"expected a JSON object, got {type(value).__name__}")
    return value


def load_json(filename: str | Path, src: Any = None) -> dict[str, Any]:
    """Load a JSON object from src, or from the named file when src is None."""
    return _decode_object(read_source(filename, src))


def decode_module(filename: str | Path, src: Any = None) -> Module:
    """Decode a module syntax tree from JSON held in src or in the named file."""
    data = read_source(filename, src)
    if not data:
        return Module()
    node = _NodeBuilder().build(_decode_object(data))
    if not isinstance(node, Module):
        raise DecodeError(f"not module type: {node!r}")
    return node


def _ast_type(mapping: dict[str, Any]) -> str:
    if not mapping:
        return ""
    value = mapping.get(AST_TYPE_KEY)
    return value if isinstance(value, str) else ""


def _strip_optional(tp: Any) -> Any:
    if get_origin(tp) in (Union, types.UnionType):
        args = [a for a in get_args(tp) if a is not type(None)]
        return args[0] if len(args) == 1 else Any
    return tp


def _is_node_class(tp: Any) -> bool:
    return isinstance(tp, type) and issubclass(tp, Node)


_BASIC_TYPES: dict[str, Any] = {
    "str": str,
    "int": int,
    "float": float,
    "bool": bool,
    "Any": Any,
    "typing.Any": Any,
    "None": type(None),
}


def _split_top_level(text: str, sep: str) -> list[str]:
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for ch in text:
        if ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
        if ch == sep and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    parts.append("".join(current))
    return [p.strip() for p in parts]


def _resolve_annotation(annotation: Any) -> Any:
    """Turn a field annotation, possibly held as text, into a usable type."""
    if not isinstance(annotation, str):
        return annotation
    text = annotation.strip().strip("'\"")
    if not text:
        return Any
    alternatives = [p for p in _split_top_level(text, "|") if p != "None"]
    if len(alternatives) != 1:
        return Any
    text = alternatives[0]
    head, bracket, rest = text.partition("[")
    if bracket and rest.endswith("]"):
        inner = rest[:-1]
        head = head.strip().rpartition(".")[2]
        if head == "Optional":
            return _resolve_annotation(inner)
        if head == "Union":
            return _resolve_annotation(" | ".join(_split_top_level(inner, ",")))
        if head in ("list", "List", "Sequence"):
            return list[_resolve_annotation(inner)]
        if head in ("dict", "Dict", "Mapping"):
            return dict
        return Any
    if text in _BASIC_TYPES:
        return _BASIC_TYPES[text]
    candidate = getattr(_nodes, text.rpartition(".")[2], None)
    return candidate if _is_node_class(candidate) else Any


class _NodeBuilder:
    """Builds node objects from decoded JSON maps, guided by field annotations."""

    _field_cache: dict[type, dict[str, tuple[str, Any]]] = {}

    def build(self, mapping: dict[str, Any]) -> Node:
        if not _ast_type(mapping):
            raise DecodeError("missing node type")
        try:
            return self._build_node(mapping)
        except UnknownNodeTypeError as exc:
            raise DecodeError(str(exc)) from exc

    @classmethod
    def _fields_of(cls, node_cls: type) -> dict[str, tuple[str, Any]]:
        cached = cls._field_cache.get(node_cls)
        if cached is None:
            cached = {
                f.metadata["json"]: (f.name, _resolve_annotation(f.type))
                for f in fields(node_cls)
                if "json" in f.metadata
            }
            cls._field_cache[node_cls] = cached
        return cached

    def _build_node(self, mapping: dict[str, Any]) -> Node:
        return self._fill(new_node(_ast_type(mapping)), mapping)

    def _fill(self, node: Node, mapping: dict[str, Any]) -> Node:
        known = self._fields_of(type(node))
        for key, value in mapping.items():
            if key == AST_TYPE_KEY or value is None or key not in known:
                continue
            attr, tp = known[key]
            setattr(node, attr, self._convert(tp, value))
        return node

    def _convert(self, tp: Any, value: Any) -> Any:
        tp = _strip_optional(tp)
        if isinstance(value, dict):
            if _ast_type(value):
                node = self._build_node(value)
                if _is_node_class(tp) and not isinstance(node, tp):
                    raise DecodeError(
                        f"cannot use {node.node_type()} as {tp.__name__}")
                return node
            return self._plain_object(tp, value)
        if isinstance(value, list):
            if get_origin(tp) is list:
                args = get_args(tp)
                inner = args[0] if args else Any
            elif tp is Any or tp is list:
                inner = Any
            else:
                raise DecodeError(f"cannot store a list in a {tp!r} field")
            return [None if item is None else self._convert(inner, item)
                    for item in value]
        if isinstance(value, bool):
            if tp is bool or tp is Any:
                return value
            if tp is str:
                return "true" if value else "false"
            raise DecodeError(f"cannot store a bool in a {tp!r} field")
        if isinstance(value, (int, float)):
            if tp is int:
                return int(value)
            if tp is float or tp is Any:
                return float(value)
            raise DecodeError(f"cannot store a number in a {tp!r} field")
        if isinstance(value, str):
            if tp is str or tp is Any:
                return value
            raise DecodeError(f"cannot store a string in a {tp!r} field")
        raise DecodeError(f"unsupported value type: {type(value).__name__}")

    def _plain_object(self, tp: Any, value: dict[str, Any]) -> Any:
        if tp is Any or tp is dict or get_origin(tp) is dict:
            return json.loads(json.dumps(value))
        if _is_node_class(tp) and tp.__name__ == tp().node_type():
            try:
                return self._fill(tp(), value)
            except TypeError as exc:
                raise DecodeError(str(exc)) from exc
        raise DecodeError(f"cannot store an object in a {tp!r} field")


def _jsonable(value: Any) -> Any:
    if isinstance(value, Node):
        return value.json_map()
    if is_dataclass(value) and not isinstance(value, type):
        return {f.metadata.get("json", f.name): _jsonable(getattr(value, f.name))
                for f in fields(value)}
    if isinstance(value, dict):
        return {str(k): _jsonable(value[k]) for k in sorted(value, key=str)}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


def json_map(value: Any) -> dict[str, Any]:
    """Return value as a JSON object dict; text and bytes are parsed as JSON."""
    if isinstance(value, dict):
        return value
    if isinstance(value, (str, bytes, bytearray)):
        return _decode_object(value)
    try:
        text = json.dumps(_jsonable(value))
    except (TypeError, ValueError) as exc:
        raise DecodeError(str(exc)) from exc
    return _decode_object(text)


def json_string(value: Any) -> str:
    """Return value as indented JSON text.

    Text and bytes holding a JSON object are reformatted; other text is
    returned unchanged. An empty string is returned when value cannot be
    represented as JSON.
    """
    if isinstance(value, (bytes, bytearray)):
        value = bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, str):
        try:
            mapping = json.loads(value)
        except ValueError:
            return value
        if not isinstance(mapping, dict):
            return value
        return json.dumps(mapping, indent=4, sort_keys=True, ensure_ascii=False)
    try:
        return json.dumps(_jsonable(value), indent=4, ensure_ascii=False)
    except (TypeError, ValueError):
        return ""