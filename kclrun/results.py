"""Results of evaluating a program: per-document maps and the list of them."""

from __future__ import annotations

import json
from collections.abc import MutableMapping
from dataclasses import dataclass, field, fields, is_dataclass
from typing import Any, Iterator, Optional

import yaml

__all__ = ["KCLResult", "KCLResultList"]

_MISSING = object()


def _lookup(value: Any, keys: list[str]) -> Any:
    for key in keys:
        if isinstance(value, dict):
            if key not in value:
                return _MISSING
            value = value[key]
        elif isinstance(value, list):
            try:
                index = int(key)
            except ValueError:
                return _MISSING
            if not 0 <= index < len(value):
                return _MISSING
            value = value[index]
        else:
            return _MISSING
    return value


def _decode_into(data: dict[str, Any], target: Any) -> Any:
    if isinstance(target, MutableMapping):
        target.update(data)
        return target
    lowered = {str(k).lower(): v for k, v in data.items()}

    def pick(name: str) -> Any:
        if name in data:
            return data[name]
        return lowered.get(name.lower(), _MISSING)

    if isinstance(target, type) and is_dataclass(target):
        kwargs = {}
        for f in fields(target):
            if f.init and (value := pick(f.name)) is not _MISSING:
                kwargs[f.name] = value
        return target(**kwargs)
    if is_dataclass(target) and not isinstance(target, type):
        for f in fields(target):
            if (value := pick(f.name)) is not _MISSING:
                setattr(target, f.name, value)
        return target
    raise TypeError(f"cannot decode a mapping into {target!r}")


def _plain(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


class KCLResult(dict):
    """One evaluated document: a mapping of top-level names to values."""

    def get(self, key: str, target: Any = None) -> Any:  # type: ignore[override]
        """Look up a dotted path such as "a.b.0.c"; None when it is absent.

        When target is given and the value is a mapping, the mapping is
        decoded into target (a dataclass type or instance, or a mapping)
        and the decoded object is returned; otherwise the value itself is.
        """
        value = _lookup(dict(self), key.split("."))
        if value is _MISSING:
            value = None
        if target is None:
            return value
        if isinstance(value, dict):
            try:
                return _decode_into(value, target)
            except (TypeError, ValueError):
                pass
        return value

    def get_value(self, key: str, target: Any = None) -> Any:
        """Look up a dotted path, raising KeyError when it is absent.

        target, when given, states the expected result: str, int or float
        for scalar values, or a dataclass type or instance, or a mapping,
        for mapping values.
        """
        value = _lookup(dict(self), key.split("."))
        if value is _MISSING:
            raise KeyError(key)
        if target is None:
            return value
        if isinstance(value, dict):
            return _decode_into(value, target)
        if isinstance(value, str):
            if target is str:
                return value
            raise TypeError(f"target expect str type: got = {target!r}")
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            if target is int:
                return int(value)
            if target is float:
                return float(value)
            raise TypeError(
                f"{key} expect float or int type: got = {target!r}")
        raise TypeError(f"unknown type: got = {target!r}")

    def yaml_string(self) -> str:
        """The document as YAML with sorted keys."""
        return yaml.safe_dump(_plain(self), sort_keys=True, indent=4,
                              default_flow_style=False, allow_unicode=True)

    def json_string(self) -> str:
        """The document as indented JSON with sorted keys."""
        return json.dumps(self, indent=4, sort_keys=True, ensure_ascii=False)


@dataclass
class KCLResultList:
    """The documents produced by one evaluation, with the raw outputs."""

    results: list[KCLResult] = field(default_factory=list)
    raw_json_result: str = ""
    raw_yaml_result: str = ""
    escaped_time: str = ""

    @classmethod
    def from_json(cls, json_result: str, yaml_result: str = "",
                  escaped_time: str = "") -> KCLResultList:
        """Build the list from the JSON array of documents an evaluation returns.

        Empty documents are dropped. Blank input gives an empty list.
        """
        if not json_result.strip():
            return cls()
        documents = json.loads(json_result)
        if not isinstance(documents, list) or not all(
                isinstance(d, dict) for d in documents):
            raise ValueError(f"invalid result: {json_result}")
        if not documents:
            raise ValueError(f"invalid result: {json_result}")
        return cls(
            results=[KCLResult(d) for d in documents if d],
            raw_json_result=json_result,
            raw_yaml_result=yaml_result,
            escaped_time=escaped_time,
        )

    def __len__(self) -> int:
        return len(self.results)

    def __iter__(self) -> Iterator[KCLResult]:
        return iter(self.results)

    def get(self, index: int) -> Optional[KCLResult]:
        """The document at index, or None when index is out of range."""
        if index == 0:
            return self.first()
        if index == len(self.results) - 1:
            return self.tail()
        if 0 <= index < len(self.results):
            return self.results[index]
        return None

    def first(self) -> Optional[KCLResult]:
        """The first document, or None when there is none."""
        return self.results[0] if self.results else None

    def tail(self) -> Optional[KCLResult]:
        """The last document, or None when there is none."""
        return self.results[-1] if self.results else None