"""
cfgcomplexity.ctrlflow_graph
============================

In-memory control flow graph consumed by the complexity metrics.

A CFG is a directed graph whose nodes are *basic blocks* and whose edges
carry a control-flow kind (fall-through, branch-true, switch-case, …).
Blocks do not hold instructions; they hold the two numbers the metrics
need: how many real instructions the block contains and how many
select-style decision points it contains.

Public API
----------
    EdgeKind      - classification of a CFG edge
    BasicBlock    - a single basic block
    CFGEdge       - a directed edge between two blocks
    CFG           - the control flow graph for one function
    cfg_summary   - multi-line human-readable dump of a CFG

Typical usage::

    from cfgcomplexity.ctrlflow_graph import CFG, EdgeKind

    cfg = CFG("test")
    entry = cfg.add_block("entry", instruction_count=2)
    then = cfg.add_block("bb1", instruction_count=1)
    other = cfg.add_block("bb2", instruction_count=1)
    cfg.add_edge(entry, then, EdgeKind.BRANCH_TRUE)
    cfg.add_edge(entry, other, EdgeKind.BRANCH_FALSE)
    print(cfg_summary(cfg))

Implementation notes
--------------------
* Block ids are dense integers allocated per CFG, so two graphs built in
  the same process never share numbering state.
* The entry block is the first block added unless :meth:`CFG.set_entry`
  names another one.
* Successor order is the order in which edges were added.
"""

from __future__ import annotations

import enum
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Set

from .errors import GraphFormatError

# ---------------------------------------------------------------------------
# Opcode classification
# ---------------------------------------------------------------------------

DEBUG_OPCODE_PREFIX = "llvm.dbg."
SELECT_OPCODE = "select"


def is_debug_opcode(opcode: str) -> bool:
    """Debug-only pseudo instructions do not count towards block size."""
    return opcode == "dbg" or opcode.startswith(DEBUG_OPCODE_PREFIX)


def count_instructions(opcodes: Iterable[str]) -> int:
    return sum(1 for op in opcodes if not is_debug_opcode(op))


def count_decision_points(opcodes: Iterable[str]) -> int:
    return sum(1 for op in opcodes if op == SELECT_OPCODE)


# ---------------------------------------------------------------------------
# Edge kinds
# ---------------------------------------------------------------------------


class EdgeKind(enum.Enum):
    """Classification of a CFG edge."""

    FALL_THROUGH = "fall-through"
    BRANCH_TRUE = "branch-true"
    BRANCH_FALSE = "branch-false"
    BACK_EDGE = "back-edge"
    SWITCH_CASE = "switch-case"
    SWITCH_DEFAULT = "switch-default"
    EXCEPTION = "exception"

    @classmethod
    def parse(cls, raw: str) -> "EdgeKind":
        """Accept either the value (``"branch-true"``) or the member name."""
        try:
            return cls(raw)
        except ValueError:
            pass
        try:
            return cls[raw.upper().replace("-", "_")]
        except KeyError:
            raise GraphFormatError(f"unknown edge kind {raw!r}") from None


# ---------------------------------------------------------------------------
# BasicBlock
# ---------------------------------------------------------------------------


class BasicBlock:
    """A basic block in the CFG.

    Attributes
    ----------
    id : int
        Dense identifier, unique within the owning CFG.
    name : str
        Label of the block (``"entry"``, ``"bb1"``, …).
    instruction_count : int
        Instructions in the block, excluding debug pseudo instructions.
        The terminator counts.
    decision_points : int
        Select-style value choices inside the block.  Branching edges are
        not decision points.
    successors : list[CFGEdge]
        Outgoing edges, in order.
    predecessors : list[CFGEdge]
        Incoming edges.
    """

    __slots__ = (
        "id",
        "name",
        "instruction_count",
        "decision_points",
        "successors",
        "predecessors",
    )

    def __init__(
        self,
        block_id: int,
        name: str,
        instruction_count: int = 0,
        decision_points: int = 0,
    ) -> None:
        if instruction_count < 0:
            raise GraphFormatError(
                f"block {name!r}: negative instruction count {instruction_count}")
        if decision_points < 0:
            raise GraphFormatError(
                f"block {name!r}: negative decision-point count {decision_points}")
        self.id: int = block_id
        self.name: str = name
        self.instruction_count: int = instruction_count
        self.decision_points: int = decision_points
        self.successors: List[CFGEdge] = []
        self.predecessors: List[CFGEdge] = []

    @property
    def is_sink(self) -> bool:
        return not self.successors

    def successor_blocks(self) -> List["BasicBlock"]:
        return [e.dst for e in self.successors]

    def __repr__(self) -> str:
        return (
            f"BasicBlock(id={self.id}, name={self.name!r}, "
            f"instructions={self.instruction_count}, "
            f"decisions={self.decision_points})"
        )

    def __hash__(self) -> int:
        return self.id

    def __eq__(self, other) -> bool:
        if isinstance(other, BasicBlock):
            return self.id == other.id and self.name == other.name
        return NotImplemented


# ---------------------------------------------------------------------------
# CFGEdge
# ---------------------------------------------------------------------------


class CFGEdge:
    """A directed edge in the CFG.

    Attributes
    ----------
    src : BasicBlock
    dst : BasicBlock
    kind : EdgeKind
    label : str or None
        Optional auxiliary label (e.g. the case constant for SWITCH_CASE).
    """

    __slots__ = ("src", "dst", "kind", "label")

    def __init__(
        self,
        src: BasicBlock,
        dst: BasicBlock,
        kind: EdgeKind = EdgeKind.FALL_THROUGH,
        label: Optional[str] = None,
    ) -> None:
        self.src = src
        self.dst = dst
        self.kind = kind
        self.label = label

    def __repr__(self) -> str:
        return (
            f"CFGEdge({self.src.name} -> {self.dst.name}, "
            f"kind={self.kind.value!r})"
        )

    def __hash__(self) -> int:
        return hash((self.src.id, self.dst.id, self.kind, self.label))

    def __eq__(self, other) -> bool:
        if isinstance(other, CFGEdge):
            return (
                self.src.id == other.src.id
                and self.dst.id == other.dst.id
                and self.kind == other.kind
                and self.label == other.label
            )
        return NotImplemented


# ---------------------------------------------------------------------------
# CFG
# ---------------------------------------------------------------------------


class CFG:
    """Intraprocedural control flow graph for a single function.

    Attributes
    ----------
    name : str
        Name of the function this CFG represents.
    entry : BasicBlock or None
        Block where every traversal starts; ``None`` only for an empty graph.
    nodes : list[BasicBlock]
        All basic blocks, in insertion order.
    edges : list[CFGEdge]
        All edges, in insertion order.
    """

    def __init__(self, name: str = "<anonymous>") -> None:
        self.name = name
        self.entry: Optional[BasicBlock] = None
        self.nodes: List[BasicBlock] = []
        self.edges: List[CFGEdge] = []
        self._by_name: Dict[str, BasicBlock] = {}

    # ----- graph mutation ---------------------------------------------------

    def add_block(
        self,
        name: str,
        instruction_count: int = 0,
        decision_points: int = 0,
    ) -> BasicBlock:
        """Create a block, register it and return it.

        The first block added becomes the entry block.
        """
        if name in self._by_name:
            raise GraphFormatError(
                f"duplicate block name {name!r} in function {self.name!r}")
        block = BasicBlock(len(self.nodes), name, instruction_count,
                           decision_points)
        self.nodes.append(block)
        self._by_name[name] = block
        if self.entry is None:
            self.entry = block
        return block

    def add_block_from_opcodes(self, name: str,
                               opcodes: Sequence[str]) -> BasicBlock:
        """Create a block whose counts are derived from its opcode list."""
        return self.add_block(
            name,
            instruction_count=count_instructions(opcodes),
            decision_points=count_decision_points(opcodes),
        )

    def add_edge(
        self,
        src: BasicBlock,
        dst: BasicBlock,
        kind: EdgeKind = EdgeKind.FALL_THROUGH,
        label: Optional[str] = None,
    ) -> CFGEdge:
        """Create an edge, register it, and wire up predecessor/successor lists."""
        e = CFGEdge(src, dst, kind=kind, label=label)
        self.edges.append(e)
        src.successors.append(e)
        dst.predecessors.append(e)
        return e

    def connect(
        self,
        src: str,
        dst: str,
        kind: EdgeKind = EdgeKind.FALL_THROUGH,
        label: Optional[str] = None,
    ) -> CFGEdge:
        """Name-based variant of :meth:`add_edge`."""
        return self.add_edge(self.block(src), self.block(dst), kind, label)

    def set_entry(self, name: str) -> BasicBlock:
        self.entry = self.block(name)
        return self.entry

    # ----- queries ----------------------------------------------------------

    def block(self, name: str) -> BasicBlock:
        """Return the block called *name*; unknown names are a format error."""
        try:
            return self._by_name[name]
        except KeyError:
            raise GraphFormatError(
                f"unknown block {name!r} in function {self.name!r}") from None

    def has_block(self, name: str) -> bool:
        return name in self._by_name

    def successors_of(self, node: BasicBlock) -> List[BasicBlock]:
        return [e.dst for e in node.successors]

    def predecessors_of(self, node: BasicBlock) -> List[BasicBlock]:
        return [e.src for e in node.predecessors]

    def sinks(self) -> List[BasicBlock]:
        return [n for n in self.nodes if n.is_sink]

    def reachable_from(self, start: BasicBlock) -> Set[BasicBlock]:
        """Return the set of nodes reachable from *start*."""
        visited: Set[BasicBlock] = set()
        worklist = [start]
        while worklist:
            n = worklist.pop()
            if n in visited:
                continue
            visited.add(n)
            for e in n.successors:
                worklist.append(e.dst)
        return visited

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self) -> Iterator[BasicBlock]:
        return iter(self.nodes)

    # ----- serialisation helpers --------------------------------------------

    def to_dot(self, title: Optional[str] = None) -> str:
        """Return a Graphviz DOT representation of this CFG."""
        lines = ["digraph CFG {"]
        lines.append(f'  label="{title or self.name}";')
        lines.append("  node [shape=box, fontname=monospace, fontsize=10];")
        for n in self.nodes:
            lbl = (f"{n.name}\\ninsns={n.instruction_count}"
                   f" selects={n.decision_points}").replace('"', '\\"')
            color = ""
            if n is self.entry:
                color = ', style=filled, fillcolor="#ccffcc"'
            elif n.is_sink:
                color = ', style=filled, fillcolor="#ffcccc"'
            lines.append(f'  BB{n.id} [label="{lbl}"{color}];')
        for e in self.edges:
            style = ""
            elabel = e.kind.value
            if e.label:
                elabel += f": {e.label}"
            if e.kind == EdgeKind.BRANCH_TRUE:
                style = ', color=green, fontcolor=green'
            elif e.kind == EdgeKind.BRANCH_FALSE:
                style = ', color=red, fontcolor=red'
            elif e.kind == EdgeKind.BACK_EDGE:
                style = ', style=dashed, color=blue, fontcolor=blue'
            lines.append(
                f'  BB{e.src.id} -> BB{e.dst.id} '
                f'[label="{elabel}"{style}];'
            )
        lines.append("}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"CFG(function={self.name!r}, nodes={len(self.nodes)}, "
            f"edges={len(self.edges)})"
        )


# ---------------------------------------------------------------------------
# Convenience: print a summary
# ---------------------------------------------------------------------------

def cfg_summary(cfg: CFG) -> str:
    """Return a multi-line human-readable summary of *cfg*."""
    lines = [repr(cfg)]
    for node in cfg.nodes:
        succ_ids = ", ".join(
            f"{e.dst.name}({e.kind.value})" for e in node.successors)
        pred_ids = ", ".join(e.src.name for e in node.predecessors)
        marker = " [entry]" if node is cfg.entry else ""
        lines.append(
            f"  {node.name}{marker} "
            f"insns={node.instruction_count}  "
            f"selects={node.decision_points}  "
            f"succ=[{succ_ids}]  "
            f"pred=[{pred_ids}]"
        )
    return "\n".join(lines)
