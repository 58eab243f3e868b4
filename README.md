# kclrun

Tools for working with KCL configuration programs from Python:

- read evaluation results (`kclrun.results`): dotted-path lookups such as
  `"deploy_topology.1.zone"`, plus YAML and JSON rendering;
- decode the JSON AST that kclvm produces into typed nodes
  (`kclrun.decoder`, `kclrun.nodes`);
- run tasks against a bounded pool of worker processes (`kclrun.pool`).

## Install

```
pip install .
```

To run the tests as well:

```
pip install ".[test]"
pytest
```

## Reading results

`KCLResultList.from_json` takes the JSON array of documents an evaluation
returns, plus the raw YAML output and the elapsed time. Empty documents are
dropped; blank input gives an empty list, and anything that is not a
non-empty array of objects raises `ValueError`.

```python
from kclrun.results import KCLResultList

results = KCLResultList.from_json('[{"x0": {"name": "kcl-go"}, "i": 123}]')
first = results.first()
print(first.get("x0.name"))        # kcl-go
print(first.get_value("i", int))   # 123
print(first.yaml_string())
print(first.json_string())
```

- `KCLResult.get(key, target=None)` follows a dotted path (list elements by
  index) and returns `None` when the path is absent. With a `target` (a
  dataclass type or instance, or a mapping) a mapping value is decoded into it.
- `KCLResult.get_value(key, target=None)` raises `KeyError` when the path is
  absent, and `TypeError` when the value does not match `target`
  (`str`, `int`, `float`, or a dataclass/mapping for mapping values).
- `KCLResultList.get(index)`, `first()` and `tail()` return `None` when out of
  range; the list also supports `len()` and iteration.

## Decoding an AST

```python
from kclrun.decoder import decode_module, json_string

module = decode_module("a.k.ast.json")
print(module.node_type(), module.position())
print(json_string(module))
```

`decode_module(filename, src=None)` reads JSON from `src` (text, bytes or a
file-like object) or, when `src` is `None`, from the named file. Empty input
gives an empty `Module`; malformed input raises `DecodeError`.
`load_json`, `read_source`, `json_map` and `json_string` are the underlying
helpers.

Every node class lives in `kclrun.nodes`. Nodes carry their position
(`line`, `column`, `end_line`, `end_column`, `filename`) and offer
`node_type()`, `position()`, `json_map()` and `json_string()`.
`type_names()` lists the registered node types and `new_node(name)` creates
an empty node, raising `UnknownNodeTypeError` for an unknown name.

## Worker pool

```python
from kclrun.pool import Runtime

def task(proc, stderr):
    proc.stdin.write(b"request\n")
    proc.stdin.flush()
    return proc.stdout.readline()

with Runtime(2, "some-worker", "--serve") as runtime:
    reply = runtime.do_task(task)
```

`Runtime(max_proc, exe, *args)` lets at most `max_proc` tasks run at once.
Each task gets a process of its own, which is killed when the task finishes.
After `close()`, `do_task` returns `None` without running the task. Each
`Process` keeps up to 10 KiB of its stderr in a `LimitBuffer`.

## What this package does not do

It has no command-line program. It does not locate a kclvm installation,
build run options from files, `-D` arguments or `-O` overrides, or start an
evaluation by itself: results are read from the JSON an evaluation has
already produced, and the worker pool runs whatever executable it is given.