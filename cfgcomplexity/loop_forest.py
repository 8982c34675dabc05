"""
Loop structure over a CFG.

This module provides the loop forest consumed by the loop complexity score,
plus the machinery to derive one from a bare :class:`~cfgcomplexity.ctrlflow_graph.CFG`
when the caller has no loop information of its own.

Principal types
---------------
- Loop                  a natural loop; owns its sub-loops
- LoopForest            the top-level loops of one function
- DominatorTree         Cooper–Harvey–Kennedy iterative dominators
- NaturalLoopDetector   back edges → natural loops → nesting
- build_loop_forest     one-call helper

Loops reference blocks by *name* only; the CFG is a separate, longer-lived
structure and is never modified.

References
----------
[1] Cooper, Harvey, Kennedy – "A Simple, Fast Dominance Algorithm", 2001.
[2] Aho, Lam, Sethi, Ullman – "Compilers: Principles, Techniques, &
    Tools", 2e, §9.6 (natural loops).
"""

from __future__ import annotations

import logging
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Deque, Dict, FrozenSet, Iterator, List, Optional, Set, Tuple

from .ctrlflow_graph import CFG, BasicBlock

_log = logging.getLogger(__name__)


# ===================================================================
#  Loop forest
# ===================================================================

@dataclass(eq=False)
class Loop:
    """
    A loop in the loop forest.

    Attributes
    ----------
    header     : name of the loop header block
    body       : names of the blocks in the loop (header included)
    sub_loops  : immediately nested loops, in order
    parent     : enclosing loop, or None for a top-level loop
    """
    header: str
    body: FrozenSet[str] = frozenset()
    sub_loops: List["Loop"] = field(default_factory=list)
    parent: Optional["Loop"] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        for sub in self.sub_loops:
            sub.parent = self

    def add_sub_loop(self, sub: "Loop") -> "Loop":
        sub.parent = self
        self.sub_loops.append(sub)
        return sub

    @property
    def depth(self) -> int:
        """Nesting depth; top-level loops are at depth 1."""
        d = 1
        cur = self.parent
        while cur is not None:
            d += 1
            cur = cur.parent
        return d

    @property
    def is_leaf(self) -> bool:
        return not self.sub_loops

    def __iter__(self) -> Iterator["Loop"]:
        return iter(self.sub_loops)


class LoopForest:
    """The top-level loops of a function, in order."""

    def __init__(self, top_level: Optional[List[Loop]] = None) -> None:
        self.top_level: List[Loop] = list(top_level or [])

    def __iter__(self) -> Iterator[Loop]:
        return iter(self.top_level)

    def __len__(self) -> int:
        return len(self.top_level)

    def __bool__(self) -> bool:
        return bool(self.top_level)

    def walk(self) -> Iterator[Tuple[Loop, int]]:
        """Yield ``(loop, depth)`` pairs, pre-order, without recursion."""
        stack: List[Tuple[Loop, int]] = [(l, 1) for l in reversed(self.top_level)]
        while stack:
            loop, depth = stack.pop()
            yield loop, depth
            for sub in reversed(loop.sub_loops):
                stack.append((sub, depth + 1))

    def all_loops(self) -> List[Loop]:
        return [loop for loop, _ in self.walk()]

    def leaves(self) -> List[Tuple[Loop, int]]:
        return [(loop, d) for loop, d in self.walk() if loop.is_leaf]

    def max_depth(self) -> int:
        return max((d for _, d in self.walk()), default=0)

    def __repr__(self) -> str:
        return f"LoopForest(top_level={len(self.top_level)}, loops={len(self.all_loops())})"


# ===================================================================
#  Dominator Tree
# ===================================================================

class DominatorTree:
    """
    Immediate dominators of every block reachable from the entry.

    Uses the Cooper–Harvey–Kennedy iterative algorithm [1] over a
    reverse post-order numbering.  Blocks unreachable from the entry get
    no idom and dominate nothing.

    Root convention
    ---------------
    The entry block's immediate dominator is itself
    (``self.idom[entry.id] == entry.id``).  Every walk up the idom chain
    stops at that self-loop.
    """

    def __init__(self, cfg: CFG):
        self.cfg = cfg
        self.idom: Dict[int, int] = {}
        self.rpo: List[BasicBlock] = []
        self._rpo_index: Dict[int, int] = {}
        self._computed = False

    def compute(self) -> "DominatorTree":
        if self._computed:
            return self
        self._computed = True
        entry = self.cfg.entry
        if entry is None:
            return self
        self.rpo = _reverse_post_order(entry)
        self._rpo_index = {b.id: i for i, b in enumerate(self.rpo)}
        self.idom = {entry.id: entry.id}

        changed = True
        while changed:
            changed = False
            for block in self.rpo[1:]:
                new_idom: Optional[int] = None
                for pred in block.predecessors:
                    pid = pred.src.id
                    if pid not in self.idom:
                        continue
                    new_idom = pid if new_idom is None else self._intersect(pid, new_idom)
                if new_idom is not None and self.idom.get(block.id) != new_idom:
                    self.idom[block.id] = new_idom
                    changed = True
        return self

    def _intersect(self, a: int, b: int) -> int:
        idx = self._rpo_index
        while a != b:
            while idx[a] > idx[b]:
                a = self.idom[a]
            while idx[b] > idx[a]:
                b = self.idom[b]
        return a

    def is_reachable(self, block: BasicBlock) -> bool:
        self.compute()
        return block.id in self.idom

    def dominates(self, a: BasicBlock, b: BasicBlock) -> bool:
        """Return True if *a* dominates *b*.  A block dominates itself."""
        self.compute()
        if b.id not in self.idom:
            return False
        cur = b.id
        while True:
            if cur == a.id:
                return True
            parent = self.idom[cur]
            if parent == cur:
                return False
            cur = parent


def _reverse_post_order(entry: BasicBlock) -> List[BasicBlock]:
    order: List[BasicBlock] = []
    visited: Set[int] = {entry.id}
    stack = [(entry, iter(entry.successor_blocks()))]
    while stack:
        node, succs = stack[-1]
        for succ in succs:
            if succ.id not in visited:
                visited.add(succ.id)
                stack.append((succ, iter(succ.successor_blocks())))
                break
        else:
            stack.pop()
            order.append(node)
    order.reverse()
    return order


# ===================================================================
#  Natural Loop Detection
# ===================================================================

class NaturalLoopDetector:
    """
    Detect the natural loops of a CFG and arrange them in a forest.

    Algorithm (Aho et al. §9.6):
    1. Compute the dominator tree.
    2. Identify back edges (edges n→h where h dominates n).
    3. For each header, compute the loop body via reverse reachability
       from the back-edge tails to the header.
    4. Nest: A is a sub-loop of the smallest loop whose body strictly
       contains A's body.
    """

    def __init__(self, cfg: CFG, domtree: Optional[DominatorTree] = None):
        self.cfg = cfg
        self.domtree = domtree or DominatorTree(cfg)

    def back_edges(self) -> List[Tuple[BasicBlock, BasicBlock]]:
        self.domtree.compute()
        result: List[Tuple[BasicBlock, BasicBlock]] = []
        for block in self.domtree.rpo:
            for succ in block.successor_blocks():
                if self.domtree.dominates(succ, block):
                    result.append((block, succ))
        return result

    def detect(self) -> LoopForest:
        header_to_tails: Dict[int, List[BasicBlock]] = defaultdict(list)
        headers: Dict[int, BasicBlock] = {}
        for tail, header in self.back_edges():
            header_to_tails[header.id].append(tail)
            headers[header.id] = header

        loops: List[Loop] = []
        for hid, tails in header_to_tails.items():
            header = headers[hid]
            body: Set[int] = {hid}
            names: Set[str] = {header.name}
            worklist: Deque[BasicBlock] = deque()
            for tail in tails:
                if tail.id not in body:
                    body.add(tail.id)
                    names.add(tail.name)
                    worklist.append(tail)
            while worklist:
                n = worklist.popleft()
                for pred in n.predecessors:
                    p = pred.src
                    if p.id not in body and self.domtree.is_reachable(p):
                        body.add(p.id)
                        names.add(p.name)
                        worklist.append(p)
            loops.append(Loop(header=header.name, body=frozenset(names)))

        # Nesting: smallest strictly-enclosing body is the parent.
        by_size = sorted(loops, key=lambda l: len(l.body))
        top_level: List[Loop] = []
        for i, inner in enumerate(by_size):
            for outer in by_size[i + 1:]:
                if inner.body < outer.body:
                    outer.add_sub_loop(inner)
                    break
            else:
                top_level.append(inner)

        # Deterministic order: by header position in the CFG.
        position = {b.name: b.id for b in self.cfg.nodes}
        top_level.sort(key=lambda l: position[l.header])
        for loop in by_size:
            loop.sub_loops.sort(key=lambda l: position[l.header])

        forest = LoopForest(top_level)
        _log.debug("function %s: %d loops, max depth %d",
                   self.cfg.name, len(loops), forest.max_depth())
        return forest


def build_loop_forest(cfg: CFG) -> LoopForest:
    """One-call API: natural-loop forest of *cfg*."""
    return NaturalLoopDetector(cfg).detect()
