"""
graph_io.py — read and write CFG description documents.

A *graph description* lists the blocks of one or more functions with their
instruction counts, decision-point counts and ordered successors.  It
describes the CFG abstraction directly; no program IR is parsed here.

JSON form::

    {"functions": [
      {"name": "test",
       "entry": "entry",
       "blocks": [
         {"name": "entry", "instructions": 2, "successors": ["bb1", "bb2"]},
         {"name": "bb1", "opcodes": ["add", "select", "ret"]},
         {"name": "bb2", "instructions": 1,
          "successors": [{"target": "bb1", "kind": "fall-through"}]}
       ]}
    ]}

A single function object at the top level is accepted as well.

S-expression form (parsed with ``sexpdata``)::

    (function test
      (entry entry)
      (block entry (instructions 2) (successors bb1 bb2))
      (block bb1 (opcodes add select ret))
      (block bb2 (instructions 1) (successors (bb1 fall-through))))

Several ``function`` forms may follow each other in one document.

Depends on:
    - sexpdata          (S-expression parsing and printing)
"""

from __future__ import annotations

import json
import logging
import os
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import sexpdata

from .ctrlflow_graph import CFG, EdgeKind
from .errors import GraphFormatError

logger = logging.getLogger(__name__)

JSON_SUFFIXES = (".json",)
SEXP_SUFFIXES = (".sexp", ".cfg", ".lisp")

_PLAIN_SYMBOL = re.compile(r"^[A-Za-z_<>=!:$%&*+/-][A-Za-z0-9_<>=!:$%&*+/-]*$")

# (target name, edge kind, label)
_EdgeSpec = Tuple[str, EdgeKind, Optional[str]]


# ===================================================================
#  Shared construction
# ===================================================================

def _build(name: str, blocks: Sequence[Dict[str, Any]],
           entry: Optional[str], source: Optional[str]) -> CFG:
    """Two passes: create every block, then wire the edges."""
    cfg = CFG(name)
    try:
        for spec in blocks:
            if spec.get("opcodes") is not None:
                block = cfg.add_block_from_opcodes(spec["name"], spec["opcodes"])
                if spec.get("instructions") is not None:
                    block.instruction_count = _count(spec, "instructions")
                if spec.get("decision_points") is not None:
                    block.decision_points = _count(spec, "decision_points")
            else:
                cfg.add_block(
                    spec["name"],
                    instruction_count=_count(spec, "instructions"),
                    decision_points=_count(spec, "decision_points"),
                )
        for spec in blocks:
            src = cfg.block(spec["name"])
            for target, kind, label in spec.get("successors", ()):
                cfg.add_edge(src, cfg.block(target), kind, label)
        if entry is not None:
            cfg.set_entry(entry)
    except GraphFormatError as exc:
        raise GraphFormatError(str(exc), source=source) from None
    logger.debug("loaded %r", cfg)
    return cfg


def _count(spec: Mapping[str, Any], key: str) -> int:
    raw = spec.get(key)
    if raw is None:
        return 0
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise GraphFormatError(
            f"block {spec['name']!r}: {key} must be an integer, got {raw!r}")
    if raw < 0:
        raise GraphFormatError(f"block {spec['name']!r}: {key} must be >= 0")
    return raw


# ===================================================================
#  JSON
# ===================================================================

def _json_edge(raw: Any, block: str) -> _EdgeSpec:
    if isinstance(raw, str):
        return raw, EdgeKind.FALL_THROUGH, None
    if isinstance(raw, dict) and isinstance(raw.get("target"), str):
        kind = EdgeKind.parse(raw["kind"]) if "kind" in raw else EdgeKind.FALL_THROUGH
        label = raw.get("label")
        return raw["target"], kind, None if label is None else str(label)
    raise GraphFormatError(f"block {block!r}: bad successor entry {raw!r}")


def _json_function(obj: Any, source: Optional[str]) -> CFG:
    if not isinstance(obj, dict):
        raise GraphFormatError("function entry must be an object", source=source)
    name = obj.get("name", "<anonymous>")
    raw_blocks = obj.get("blocks")
    if not isinstance(raw_blocks, list):
        raise GraphFormatError(f"function {name!r}: 'blocks' must be a list",
                               source=source)
    entry = obj.get("entry")
    if entry is not None and not isinstance(entry, str):
        raise GraphFormatError(
            f"function {name!r}: 'entry' must be a block name, got {entry!r}",
            source=source)
    blocks: List[Dict[str, Any]] = []
    for raw in raw_blocks:
        if not isinstance(raw, dict) or not isinstance(raw.get("name"), str):
            raise GraphFormatError(
                f"function {name!r}: every block needs a string 'name'",
                source=source)
        raw_succs = raw.get("successors", [])
        if not isinstance(raw_succs, list):
            raise GraphFormatError(
                f"block {raw['name']!r}: 'successors' must be a list",
                source=source)
        try:
            succs = [_json_edge(s, raw["name"]) for s in raw_succs]
        except GraphFormatError as exc:
            raise GraphFormatError(str(exc), source=source) from None
        opcodes = raw.get("opcodes")
        if opcodes is not None and not (
                isinstance(opcodes, list) and all(isinstance(o, str) for o in opcodes)):
            raise GraphFormatError(
                f"block {raw['name']!r}: opcodes must be a list of strings",
                source=source)
        blocks.append({
            "name": raw["name"],
            "instructions": raw.get("instructions"),
            "decision_points": raw.get("decision_points"),
            "opcodes": opcodes,
            "successors": succs,
        })
    return _build(str(name), blocks, entry, source)


def load_json(text: str, source: Optional[str] = None) -> List[CFG]:
    """Parse a JSON graph description into CFGs, in document order."""
    try:
        doc = json.loads(text)
    except json.JSONDecodeError as exc:
        raise GraphFormatError(f"invalid JSON: {exc}", source=source) from exc
    if isinstance(doc, dict) and "functions" in doc:
        functions = doc["functions"]
        if not isinstance(functions, list):
            raise GraphFormatError("'functions' must be a list", source=source)
    elif isinstance(doc, dict):
        functions = [doc]
    else:
        raise GraphFormatError("top level must be an object", source=source)
    return [_json_function(f, source) for f in functions]


def cfg_to_dict(cfg: CFG) -> Dict[str, Any]:
    blocks = []
    for node in cfg.nodes:
        succs: List[Any] = []
        for e in node.successors:
            if e.kind is EdgeKind.FALL_THROUGH and e.label is None:
                succs.append(e.dst.name)
            else:
                entry: Dict[str, Any] = {"target": e.dst.name, "kind": e.kind.value}
                if e.label is not None:
                    entry["label"] = e.label
                succs.append(entry)
        blocks.append({
            "name": node.name,
            "instructions": node.instruction_count,
            "decision_points": node.decision_points,
            "successors": succs,
        })
    doc: Dict[str, Any] = {"name": cfg.name, "blocks": blocks}
    if cfg.entry is not None:
        doc["entry"] = cfg.entry.name
    return doc


def dump_json(cfgs: Sequence[CFG], indent: Optional[int] = 2) -> str:
    return json.dumps({"functions": [cfg_to_dict(c) for c in cfgs]},
                      indent=indent)


# ===================================================================
#  S-expressions
# ===================================================================

def _normalise(obj: Any) -> Any:
    """Recursively turn sexpdata output into lists, str and int."""
    if isinstance(obj, list):
        return [_normalise(x) for x in obj]
    if isinstance(obj, sexpdata.Symbol):
        return str(obj)
    if isinstance(obj, (bool, int, float, str)):
        return obj
    raise GraphFormatError(f"unsupported S-expression element {obj!r}")


def _parse_sexp_many(text: str, source: Optional[str]) -> List[Any]:
    # sexpdata parses a single form; wrap the stream and strip the outer layer.
    # nil/true are disabled so blocks may be called "nil" or "t".
    try:
        parsed = sexpdata.loads(f"({text}\n)", nil=None, true=None)
    except Exception as exc:
        raise GraphFormatError(f"failed to parse S-expression: {exc}",
                               source=source) from exc
    try:
        return [_normalise(item) for item in parsed]
    except GraphFormatError as exc:
        raise GraphFormatError(str(exc), source=source) from None


def _sexp_edge(raw: Any, block: str) -> _EdgeSpec:
    if isinstance(raw, list) and 1 <= len(raw) <= 3:
        kind = EdgeKind.parse(str(raw[1])) if len(raw) > 1 else EdgeKind.FALL_THROUGH
        label = str(raw[2]) if len(raw) > 2 else None
        return str(raw[0]), kind, label
    if isinstance(raw, (str, int)):
        return str(raw), EdgeKind.FALL_THROUGH, None
    raise GraphFormatError(f"block {block!r}: bad successor {raw!r}")


def _sexp_block(form: List[Any]) -> Dict[str, Any]:
    if len(form) < 2:
        raise GraphFormatError("(block …) needs a name")
    name = str(form[1])
    spec: Dict[str, Any] = {"name": name, "successors": []}
    for clause in form[2:]:
        if not isinstance(clause, list) or not clause:
            raise GraphFormatError(f"block {name!r}: bad clause {clause!r}")
        head, args = clause[0], clause[1:]
        if head in ("instructions", "decisions"):
            if len(args) != 1:
                raise GraphFormatError(f"block {name!r}: ({head} N) takes one value")
            spec["instructions" if head == "instructions" else "decision_points"] = args[0]
        elif head == "opcodes":
            spec["opcodes"] = [str(a) for a in args]
        elif head == "successors":
            spec["successors"] = [_sexp_edge(a, name) for a in args]
        else:
            raise GraphFormatError(f"block {name!r}: unknown clause {head!r}")
    return spec


def _sexp_function(form: Any, source: Optional[str]) -> CFG:
    if not isinstance(form, list) or not form or form[0] != "function":
        raise GraphFormatError(f"expected (function …), got {form!r}",
                               source=source)
    if len(form) < 2 or isinstance(form[1], list):
        raise GraphFormatError("(function …) needs a name", source=source)
    name = str(form[1])
    entry: Optional[str] = None
    blocks: List[Dict[str, Any]] = []
    try:
        for clause in form[2:]:
            if isinstance(clause, list) and clause and clause[0] == "entry":
                if len(clause) != 2:
                    raise GraphFormatError(f"function {name!r}: (entry BB) takes one name")
                entry = str(clause[1])
            elif isinstance(clause, list) and clause and clause[0] == "block":
                blocks.append(_sexp_block(clause))
            else:
                raise GraphFormatError(
                    f"function {name!r}: unexpected clause {clause!r}")
    except GraphFormatError as exc:
        raise GraphFormatError(str(exc), source=source) from None
    return _build(name, blocks, entry, source)


def load_sexp(text: str, source: Optional[str] = None) -> List[CFG]:
    """Parse an S-expression graph description into CFGs."""
    return [_sexp_function(f, source) for f in _parse_sexp_many(text, source)]


def _reads_as_number(name: str) -> bool:
    try:
        float(name)
    except ValueError:
        return False
    return True


def _name_atom(name: str) -> Any:
    # sexpdata backslash-escapes some symbol characters and reads numeric
    # tokens ("+1", "inf", "nan") back as numbers; such names go out as strings.
    if _PLAIN_SYMBOL.match(name) and not _reads_as_number(name):
        return sexpdata.Symbol(name)
    return name


def dump_sexp(cfgs: Sequence[CFG]) -> str:
    Sym = sexpdata.Symbol
    out: List[str] = []
    for cfg in cfgs:
        form: List[Any] = [Sym("function"), _name_atom(cfg.name)]
        if cfg.entry is not None:
            form.append([Sym("entry"), _name_atom(cfg.entry.name)])
        for node in cfg.nodes:
            block: List[Any] = [
                Sym("block"), _name_atom(node.name),
                [Sym("instructions"), node.instruction_count],
                [Sym("decisions"), node.decision_points],
            ]
            if node.successors:
                succs: List[Any] = [Sym("successors")]
                for e in node.successors:
                    if e.kind is EdgeKind.FALL_THROUGH and e.label is None:
                        succs.append(_name_atom(e.dst.name))
                    else:
                        item = [_name_atom(e.dst.name), Sym(e.kind.value)]
                        if e.label is not None:
                            item.append(e.label)
                        succs.append(item)
                block.append(succs)
            form.append(block)
        out.append(sexpdata.dumps(form))
    return "\n".join(out)


# ===================================================================
#  Files
# ===================================================================

def load_path(path: str) -> List[CFG]:
    """Load every function described in the file at *path*.

    The format is chosen by suffix: ``.json`` for JSON, ``.sexp``/``.cfg``
    /``.lisp`` for S-expressions.
    """
    suffix = os.path.splitext(path)[1].lower()
    if suffix not in JSON_SUFFIXES + SEXP_SUFFIXES:
        raise GraphFormatError(f"unrecognised graph file suffix {suffix!r}",
                               source=path)
    try:
        with open(path, "r", encoding="utf-8") as fh:
            text = fh.read()
    except OSError as exc:
        raise GraphFormatError(f"cannot read file: {exc}", source=path) from exc
    if suffix in JSON_SUFFIXES:
        cfgs = load_json(text, source=path)
    else:
        cfgs = load_sexp(text, source=path)
    logger.info("%s: %d function(s)", path, len(cfgs))
    return cfgs
