import io
import json

import pytest

from kclrun.decoder import (
    DecodeError,
    decode_module,
    json_map,
    json_string,
    load_json,
    read_source,
)
from kclrun.nodes import (
    AssignStmt,
    ImportStmt,
    Module,
    Name,
    NumberLit,
    SchemaStmt,
)

FILENAME = "testdata/a.k"


def _pos(line, column, end_line, end_column):
    return {"filename": FILENAME, "line": line, "column": column,
            "end_line": end_line, "end_column": end_column}


MODULE_DOC = {
    "_ast_type": "Module",
    **_pos(1, 1, 24, 23),
    "relative_filename": "",
    "pkg": "",
    "doc": "",
    "name": "__main__",
    "body": [
        {
            "_ast_type": "ImportStmt",
            **_pos(3, 1, 3, 27),
            "path": "some.pkg",
            "name": "pkgName",
            "asname": "pkgName",
            "rawpath": "some.pkg",
            "path_nodes": [
                {"_ast_type": "Name", **_pos(3, 8, 3, 12), "value": "some"},
                {"_ast_type": "Name", **_pos(3, 13, 3, 16), "value": "pkg"},
            ],
        },
        {
            "_ast_type": "SchemaStmt",
            **_pos(5, 1, 7, 17),
            "doc": "",
            "name": "Person",
            "parent_name": None,
            "for_host_name": None,
            "is_relaxed": False,
            "is_mixin": False,
            "is_protocol": False,
            "args": None,
            "mixins": [],
            "decorators": [],
            "checks": [],
            "index_signature": None,
            "body": [
                {
                    "_ast_type": "SchemaAttr",
                    **_pos(6, 5, 6, 22),
                    "doc": "",
                    "name": "name",
                    "type_str": "str",
                    "op": "=",
                    "is_final": False,
                    "is_optional": False,
                    "decorators": [],
                    "value": {
                        "_ast_type": "StringLit",
                        **_pos(6, 17, 6, 22),
                        "value": "kcl",
                        "is_long_string": False,
                        "raw_value": "'kcl'",
                    },
                }
            ],
        },
        {
            "_ast_type": "AssignStmt",
            **_pos(9, 1, 9, 8),
            "targets": [
                {"_ast_type": "Identifier", **_pos(9, 1, 9, 4),
                 "names": ["age"], "pkgpath": "", "ctx": "STORE"}
            ],
            "value": {"_ast_type": "NumberLit", **_pos(9, 7, 9, 8),
                      "value": 1, "binary_suffix": ""},
            "type_annotation": "",
            "type_annotation_node": None,
        },
    ],
    "global_names": ["age"],
    "local_names": {"Person": ["name"]},
    "comments": [
        {"_ast_type": "Comment", **_pos(1, 1, 1, 9), "text": "# header"}
    ],
}


def _prune(value):
    """Drop values that count as empty: None, empty strings, lists and maps."""
    if isinstance(value, dict):
        pruned = {k: _prune(v) for k, v in value.items()}
        return {k: v for k, v in pruned.items() if v not in (None, "", [], {})}
    if isinstance(value, list):
        return [_prune(v) for v in value]
    return value


@pytest.fixture
def ast_file(tmp_path):
    path = tmp_path / "a.k.ast.json"
    path.write_text(json.dumps(MODULE_DOC), encoding="utf-8")
    return path


def test_build_ast_fields(ast_file):
    m = decode_module(ast_file, None)
    assert m.ast_type == "Module"
    assert m.line == 1
    assert m.column == 1
    assert m.end_line == 24
    assert m.end_column == 23
    assert m.filename == "testdata/a.k"
    assert m.pkg == ""
    assert len(m.body) > 0
    assert isinstance(m.body[0], ImportStmt)
    assert m.body[0].ast_type == "ImportStmt"


def test_build_ast_nested_nodes(ast_file):
    m = decode_module(ast_file)
    imp, schema, assign = m.body
    assert [n.value for n in imp.path_nodes] == ["some", "pkg"]
    assert all(isinstance(n, Name) for n in imp.path_nodes)
    assert isinstance(schema, SchemaStmt)
    assert schema.body[0].value.value == "kcl"
    assert isinstance(assign, AssignStmt)
    assert assign.targets[0].names == ["age"]
    assert isinstance(assign.value, NumberLit)
    assert assign.value.value == 1.0
    assert m.local_names == {"Person": ["name"]}
    assert m.comments[0].text == "# header"


def test_build_ast_round_trip(ast_file):
    m = decode_module(ast_file, None)
    want = load_json(ast_file, None)
    got = load_json(ast_file, json_string(m))
    assert _prune(got) == _prune(want)


def test_decode_module_from_string_source():
    m = decode_module("ignored.json", json.dumps(MODULE_DOC))
    assert m.name == "__main__"
    assert m.global_names == ["age"]


def test_decode_module_empty_source():
    m = decode_module("x.json", b"")
    assert isinstance(m, Module)
    assert m.body == []


def test_decode_module_not_module():
    with pytest.raises(DecodeError):
        decode_module("x.json", json.dumps({"_ast_type": "Name", "value": "a"}))


def test_decode_module_without_type():
    with pytest.raises(DecodeError):
        decode_module("x.json", "{}")


def test_decode_module_unknown_type():
    doc = {"_ast_type": "Module", "body": [{"_ast_type": "NoSuchNode"}]}
    with pytest.raises(DecodeError):
        decode_module("x.json", json.dumps(doc))


def test_decode_module_string_into_expr_field():
    doc = {"_ast_type": "Module",
           "body": [{"_ast_type": "AssignStmt", "value": "oops"}]}
    with pytest.raises(DecodeError):
        decode_module("x.json", json.dumps(doc))


def test_decode_module_list_into_string_field():
    with pytest.raises(DecodeError):
        decode_module("x.json", json.dumps({"_ast_type": "Module", "pkg": ["a"]}))


def test_decode_module_invalid_json():
    with pytest.raises(DecodeError):
        decode_module("x.json", "{not json")


def test_bool_into_string_field():
    doc = {"_ast_type": "Module",
           "body": [{"_ast_type": "ExprStmt",
                     "exprs": [{"_ast_type": "Name", "value": True}]}]}
    m = decode_module("x.json", json.dumps(doc))
    assert m.body[0].exprs[0].value == "true"


def test_literal_value_number_is_float():
    doc = {"_ast_type": "Module",
           "body": [{"_ast_type": "ExprStmt",
                     "exprs": [{"_ast_type": "Literal", "value": 3}]}]}
    m = decode_module("x.json", json.dumps(doc))
    value = m.body[0].exprs[0].value
    assert value == 3.0
    assert isinstance(value, float)


def test_unknown_keys_are_ignored():
    doc = {"_ast_type": "Module", "name": "main", "mystery": 42}
    m = decode_module("x.json", json.dumps(doc))
    assert m.name == "main"


def test_read_source_variants(tmp_path):
    path = tmp_path / "src.txt"
    path.write_bytes(b"hello")
    assert read_source(path, None) == b"hello"
    assert read_source("unused", b"abc") == b"abc"
    assert read_source("unused", "abc") == b"abc"
    assert read_source("unused", io.BytesIO(b"xyz")) == b"xyz"
    assert read_source("unused", io.StringIO("xyz")) == b"xyz"


def test_read_source_unsupported_type():
    with pytest.raises(TypeError):
        read_source("unused", 42)


def test_read_source_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_source(tmp_path / "missing.json", None)


def test_load_json_rejects_non_object():
    with pytest.raises(DecodeError):
        load_json("unused", "[1, 2]")


def test_load_json_object():
    assert load_json("unused", '{"a": 1}') == {"a": 1}


def test_json_string_reformats_object_text():
    assert json_string('{"b":1,"a":2}') == '{\n    "a": 2,\n    "b": 1\n}'


def test_json_string_returns_non_json_text():
    assert json_string("not json") == "not json"


def test_json_string_of_node():
    node = Name(value="x", line=2, column=3)
    assert json.loads(json_string(node)) == node.json_map()


def test_json_string_unserialisable_is_empty():
    assert json_string({"a": object()}) == ""


def test_json_map_variants():
    node = Name(value="x")
    assert json_map(node) == node.json_map()
    assert json_map(b'{"k": [1]}') == {"k": [1]}
    mapping = {"a": 1}
    assert json_map(mapping) is mapping


def test_json_map_error():
    with pytest.raises(DecodeError):
        json_map("[1]")