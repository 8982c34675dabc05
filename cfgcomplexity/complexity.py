# cfgcomplexity/complexity.py
"""
Static complexity metrics over a function's control flow graph.

Metrics
-------
- block_count                     number of basic blocks
- instruction_count               instructions over all blocks
- mccabe_measure                  path count weighted by select-style
                                  decision points
- longest_path_instruction_count  instructions along the deepest
                                  entry-to-sink path
- loop_complexity_score           geometric mean of leaf-loop depths

The two path metrics are bottom-up folds over the CFG starting at the
entry block.  Each call owns a fresh memo table mapping a block to one of
``IN_PROGRESS`` or ``FINALIZED(value)``; a block is finalized exactly once,
after all of its successors.  Reaching a block that is still in progress
means the traversal came back to a block on its own stack (a back edge),
which is reported as :class:`~cfgcomplexity.errors.MalformedGraphError`
unless the caller asked for back edges to be ignored.

The traversal runs on an explicit work stack, so deep CFGs do not touch the
interpreter recursion limit.

Usage example
-------------
    from cfgcomplexity.complexity import ComplexityAnalyzer

    result = ComplexityAnalyzer(cfg).run()
    print(result.mccabe, result.longest_path)

Reference
---------
McCabe – "A Complexity Measure", IEEE TSE, 1976.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, List, Optional, Tuple, TypeVar

from .config import (
    BACK_EDGE_ERROR,
    BACK_EDGE_IGNORE,
    METRIC_BLOCKS,
    METRIC_INSTRUCTIONS,
    METRIC_LONGEST_PATH,
    METRIC_LOOP_SCORE,
    METRIC_MCCABE,
    AnalysisConfig,
)
from .ctrlflow_graph import CFG, BasicBlock
from .errors import EmptyGraphError, MalformedGraphError
from .loop_forest import LoopForest, build_loop_forest

_log = logging.getLogger(__name__)

V = TypeVar("V")

# (path depth in blocks, instructions along the path)
PathWeight = Tuple[int, int]


# ===================================================================
#  Memo table
# ===================================================================

class NodeState(enum.Enum):
    UNVISITED = "unvisited"
    IN_PROGRESS = "in-progress"
    FINALIZED = "finalized"


class MemoTable(Generic[V]):
    """Per-call block → state/value table.  Never shared between calls."""

    def __init__(self, metric: str) -> None:
        self.metric = metric
        self._states: Dict[int, NodeState] = {}
        self._values: Dict[int, V] = {}

    def state(self, block: BasicBlock) -> NodeState:
        return self._states.get(block.id, NodeState.UNVISITED)

    def begin(self, block: BasicBlock) -> None:
        self._states[block.id] = NodeState.IN_PROGRESS

    def finalize(self, block: BasicBlock, value: V) -> None:
        self._states[block.id] = NodeState.FINALIZED
        self._values[block.id] = value

    def value(self, block: BasicBlock) -> V:
        return self._values[block.id]

    def __len__(self) -> int:
        return len(self._values)


def _fold(
    cfg: CFG,
    metric: str,
    sink_value: Callable[[BasicBlock], V],
    join: Callable[[BasicBlock, List[V]], V],
    on_back_edge: str = BACK_EDGE_ERROR,
) -> V:
    """Post-order fold of the CFG from its entry block.

    *sink_value* gives the value of a block with no successors; *join*
    combines a block with its successors' values, which arrive in
    successor order.  A block whose every out-edge was skipped as a back
    edge is treated as a sink.
    """
    entry = cfg.entry
    if entry is None:
        raise EmptyGraphError(
            f"{metric}: function {cfg.name!r} has no entry block", metric=metric)

    memo: MemoTable[V] = MemoTable(metric)
    memo.begin(entry)
    stack: List[Tuple[BasicBlock, Any, List[V]]] = [
        (entry, iter(entry.successor_blocks()), [])
    ]
    while stack:
        block, succs, values = stack[-1]
        for succ in succs:
            state = memo.state(succ)
            if state is NodeState.FINALIZED:
                values.append(memo.value(succ))
                continue
            if state is NodeState.IN_PROGRESS:
                if on_back_edge == BACK_EDGE_IGNORE:
                    _log.debug("%s: skipping back edge %s -> %s",
                               metric, block.name, succ.name)
                    continue
                raise MalformedGraphError(
                    f"{metric}: block {succ.name!r} in function {cfg.name!r} "
                    f"reached again while in progress (edge from "
                    f"{block.name!r})",
                    block=succ.name, metric=metric)
            memo.begin(succ)
            stack.append((succ, iter(succ.successor_blocks()), []))
            break
        else:
            stack.pop()
            result = join(block, values) if values else sink_value(block)
            memo.finalize(block, result)
            if stack:
                stack[-1][2].append(result)

    _log.debug("%s: function %s finalized %d of %d blocks",
               metric, cfg.name, len(memo), len(cfg.nodes))
    return memo.value(entry)


# ===================================================================
#  Counters
# ===================================================================

def block_count(cfg: CFG) -> int:
    return len(cfg.nodes)


def instruction_count(cfg: CFG) -> int:
    return sum(b.instruction_count for b in cfg.nodes)


# ===================================================================
#  McCabe measure
# ===================================================================

def _mccabe_sink(block: BasicBlock) -> int:
    return block.decision_points + 1


def _mccabe_join(block: BasicBlock, values: List[int]) -> int:
    return sum(values) + block.decision_points


def mccabe_measure(cfg: CFG, on_back_edge: str = BACK_EDGE_ERROR) -> int:
    """Sum of sink paths below the entry plus every decision point met.

    A sink counts one path plus its own decision points; an inner block
    adds its decision points to the sum (not the max) of its successors.
    """
    return _fold(cfg, METRIC_MCCABE, _mccabe_sink, _mccabe_join, on_back_edge)


# ===================================================================
#  Longest path
# ===================================================================

def _longest_sink(block: BasicBlock) -> PathWeight:
    return (1, block.instruction_count)


def _longest_join(block: BasicBlock, values: List[PathWeight]) -> PathWeight:
    # Block depth first, instructions second; later successors win ties.
    best: PathWeight = (0, 0)
    for candidate in values:
        if best <= candidate:
            best = candidate
    return (best[0] + 1, best[1] + block.instruction_count)


def longest_path_weight(cfg: CFG, on_back_edge: str = BACK_EDGE_ERROR) -> PathWeight:
    """``(blocks, instructions)`` of the deepest entry-to-sink path."""
    return _fold(cfg, METRIC_LONGEST_PATH, _longest_sink, _longest_join,
                 on_back_edge)


def longest_path_instruction_count(cfg: CFG,
                                   on_back_edge: str = BACK_EDGE_ERROR) -> int:
    """Instructions along the path with the most blocks.

    Paths are ranked by block depth and only then by instruction count, so
    a long chain of small blocks beats a short path of large ones.
    """
    return longest_path_weight(cfg, on_back_edge)[1]


# ===================================================================
#  Loop complexity score
# ===================================================================

def loop_complexity_score(forest: LoopForest) -> float:
    """Geometric mean of the nesting depths of the leaf loops.

    Inner loops contribute only through their leaves; 0.0 without loops.
    """
    accum = 1.0
    leaves = 0
    for loop, depth in forest.walk():
        if loop.is_leaf:
            accum *= depth
            leaves += 1
    if leaves == 0:
        return 0.0
    return accum ** (1.0 / leaves)


# ===================================================================
#  Analyzer
# ===================================================================

@dataclass
class ComplexityResult:
    """Metrics of one function; unrequested metrics stay ``None``."""
    function: str
    blocks: Optional[int] = None
    instructions: Optional[int] = None
    mccabe: Optional[int] = None
    longest_path: Optional[int] = None
    loop_score: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "function": self.function,
            METRIC_BLOCKS: self.blocks,
            METRIC_INSTRUCTIONS: self.instructions,
            METRIC_MCCABE: self.mccabe,
            METRIC_LONGEST_PATH: self.longest_path,
            METRIC_LOOP_SCORE: self.loop_score,
        }


class ComplexityAnalyzer:
    """
    Compute the complexity metrics of one CFG.

    *loops* is the loop forest to score; when omitted and
    ``config.loop_score`` is set, it is derived from the CFG's natural
    loops on first use.
    """

    def __init__(self, cfg: CFG, config: Optional[AnalysisConfig] = None,
                 loops: Optional[LoopForest] = None):
        self.cfg = cfg
        self.config = (config or AnalysisConfig()).check()
        self._loops = loops

    def block_count(self) -> int:
        return block_count(self.cfg)

    def instruction_count(self) -> int:
        return instruction_count(self.cfg)

    def mccabe_measure(self) -> int:
        return mccabe_measure(self.cfg, self.config.on_back_edge)

    def longest_path_instruction_count(self) -> int:
        return longest_path_instruction_count(self.cfg, self.config.on_back_edge)

    def loop_forest(self) -> Optional[LoopForest]:
        if self._loops is None and self.config.loop_score:
            self._loops = build_loop_forest(self.cfg)
        return self._loops

    def loop_complexity_score(self) -> Optional[float]:
        forest = self.loop_forest()
        if forest is None:
            return None
        return loop_complexity_score(forest)

    def run(self) -> ComplexityResult:
        """Compute every metric selected in the configuration."""
        config = self.config
        result = ComplexityResult(function=self.cfg.name)
        if config.wants(METRIC_BLOCKS):
            result.blocks = self.block_count()
        if config.wants(METRIC_INSTRUCTIONS):
            result.instructions = self.instruction_count()
        if config.wants(METRIC_MCCABE):
            result.mccabe = self.mccabe_measure()
        if config.wants(METRIC_LONGEST_PATH):
            result.longest_path = self.longest_path_instruction_count()
        if config.wants(METRIC_LOOP_SCORE):
            result.loop_score = self.loop_complexity_score()
        _log.debug("function %s: %s", self.cfg.name, result)
        return result
