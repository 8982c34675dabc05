# tests/conftest.py
"""
Shared fixtures for the cfgcomplexity test-suite.

The graphs below mirror small functions whose metrics are known by hand:
every block's terminator counts as one instruction, so a block holding
only ``ret`` or ``br`` has an instruction count of 1.
"""

from typing import Optional, Sequence, Tuple

import pytest

from cfgcomplexity.ctrlflow_graph import CFG

BlockSpec = Tuple[str, int, int, Sequence[str]]


def build_cfg(name: str, blocks: Sequence[BlockSpec],
              entry: Optional[str] = None) -> CFG:
    """``blocks`` is a list of (name, instructions, decisions, successors)."""
    cfg = CFG(name)
    for block_name, insns, decisions, _ in blocks:
        cfg.add_block(block_name, instruction_count=insns,
                      decision_points=decisions)
    for block_name, _, _, succs in blocks:
        for succ in succs:
            cfg.connect(block_name, succ)
    if entry is not None:
        cfg.set_entry(entry)
    return cfg


@pytest.fixture
def make_cfg():
    return build_cfg


# ── straight-line and branching shapes ──────────────────────────

@pytest.fixture
def single_block():
    return build_cfg("test", [("entry", 1, 0, [])])


@pytest.fixture
def two_sequential():
    return build_cfg("test", [
        ("entry", 1, 0, ["bb1"]),
        ("bb1", 1, 0, []),
    ])


@pytest.fixture
def if_else():
    return build_cfg("test", [
        ("entry", 1, 0, ["bb1", "bb2"]),
        ("bb1", 1, 0, []),
        ("bb2", 1, 0, []),
    ])


@pytest.fixture
def switch_cfg():
    """switch with three cases and a default, plus an unreachable block.

    The default destination is the first successor.
    """
    return build_cfg("test", [
        ("entry", 1, 0, ["default", "case0", "case1", "case2"]),
        ("case0", 1, 0, []),
        ("case1", 1, 0, []),
        ("case2", 1, 0, []),
        ("default", 1, 0, []),
        ("end", 1, 0, []),
    ])


@pytest.fixture
def diamond():
    return build_cfg("test", [
        ("entry", 2, 0, ["left", "right"]),
        ("left", 1, 1, ["join"]),
        ("right", 3, 0, ["join"]),
        ("join", 1, 0, []),
    ])


# ── loops ───────────────────────────────────────────────────────

@pytest.fixture
def simple_loop():
    return build_cfg("loop", [
        ("entry", 1, 0, ["header"]),
        ("header", 2, 0, ["body", "exit"]),
        ("body", 3, 0, ["header"]),
        ("exit", 1, 0, []),
    ])


@pytest.fixture
def four_level_nest():
    """Four perfectly nested counted loops (i, j, k, l)."""
    return build_cfg("test", [
        ("entry", 1, 0, ["for.cond"]),
        ("for.cond", 3, 0, ["for.cond2", "for.end29"]),
        ("for.cond2", 3, 0, ["for.cond6", "for.inc27"]),
        ("for.cond6", 3, 0, ["for.cond10", "for.inc24"]),
        ("for.cond10", 3, 0, ["for.body13", "for.inc21"]),
        ("for.body13", 12, 0, ["for.cond10"]),
        ("for.inc21", 2, 0, ["for.cond6"]),
        ("for.inc24", 2, 0, ["for.cond2"]),
        ("for.inc27", 2, 0, ["for.cond"]),
        ("for.end29", 1, 0, []),
    ])
