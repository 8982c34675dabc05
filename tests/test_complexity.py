# tests/test_complexity.py
"""
Tests for the complexity metrics: counters, McCabe measure, longest-path
instruction count and the loop complexity score.
"""

import pytest

from cfgcomplexity.complexity import (
    ComplexityAnalyzer,
    MemoTable,
    NodeState,
    block_count,
    instruction_count,
    longest_path_instruction_count,
    longest_path_weight,
    loop_complexity_score,
    mccabe_measure,
)
from cfgcomplexity.config import AnalysisConfig
from cfgcomplexity.ctrlflow_graph import CFG
from cfgcomplexity.errors import EmptyGraphError, MalformedGraphError
from cfgcomplexity.loop_forest import Loop, LoopForest


class TestBlockCount:

    def test_single_block(self, single_block):
        assert block_count(single_block) == 1

    def test_two_sequential_blocks(self, two_sequential):
        assert block_count(two_sequential) == 2

    def test_if_else(self, if_else):
        assert block_count(if_else) == 3

    def test_unreachable_blocks_count(self, switch_cfg):
        assert block_count(switch_cfg) == 6

    def test_empty_graph(self):
        assert block_count(CFG("empty")) == 0


class TestInstructionCount:

    def test_single_instruction(self, single_block):
        assert instruction_count(single_block) == 1

    def test_few_instructions_in_one_block(self, make_cfg):
        cfg = make_cfg("test", [("entry", 3, 0, [])])
        assert instruction_count(cfg) == 3

    def test_few_instructions_in_few_blocks(self, make_cfg):
        cfg = make_cfg("test", [
            ("entry", 2, 0, ["bb1", "bb2"]),
            ("bb1", 2, 0, []),
            ("bb2", 2, 0, []),
        ])
        assert instruction_count(cfg) == 6

    def test_debug_opcodes_excluded(self):
        cfg = CFG("test")
        cfg.add_block_from_opcodes(
            "entry", ["add", "llvm.dbg.value", "dbg", "ret"])
        assert instruction_count(cfg) == 2

    def test_empty_graph(self):
        assert instruction_count(CFG("empty")) == 0


class TestMcCabeMeasure:

    def test_two_sequential_blocks(self, two_sequential):
        assert mccabe_measure(two_sequential) == 1

    def test_one_select(self):
        cfg = CFG("test")
        cfg.add_block_from_opcodes("entry", ["icmp", "select", "ret"])
        assert mccabe_measure(cfg) == 2

    def test_two_selects(self):
        cfg = CFG("test")
        cfg.add_block_from_opcodes("entry", ["select", "select", "ret"])
        assert mccabe_measure(cfg) == 3

    def test_switch_counts_every_target(self, switch_cfg):
        assert mccabe_measure(switch_cfg) == 4

    def test_if_else_sums_sinks(self, if_else):
        assert mccabe_measure(if_else) == 2

    def test_shared_sink_visited_through_memo(self, diamond):
        # join counted once per incoming path, plus left's select
        assert mccabe_measure(diamond) == 3

    def test_decision_points_on_inner_block(self, make_cfg):
        cfg = make_cfg("test", [
            ("entry", 1, 2, ["bb1"]),
            ("bb1", 1, 0, []),
        ])
        assert mccabe_measure(cfg) == 3

    def test_duplicate_successor_edges(self, make_cfg):
        cfg = make_cfg("test", [
            ("entry", 1, 0, ["bb1", "bb1"]),
            ("bb1", 1, 0, []),
        ])
        assert mccabe_measure(cfg) == 2

    def test_back_edge_is_fatal(self, simple_loop):
        with pytest.raises(MalformedGraphError) as info:
            mccabe_measure(simple_loop)
        assert info.value.block == "header"
        assert info.value.metric == "mccabe"

    def test_self_loop_is_fatal(self, make_cfg):
        cfg = make_cfg("test", [("entry", 1, 0, ["entry"])])
        with pytest.raises(MalformedGraphError):
            mccabe_measure(cfg)

    def test_back_edge_ignored(self, simple_loop):
        # body's only edge is skipped, so it ends a path
        assert mccabe_measure(simple_loop, on_back_edge="ignore") == 2

    def test_empty_graph_raises(self):
        with pytest.raises(EmptyGraphError):
            mccabe_measure(CFG("empty"))

    def test_deep_chain_does_not_recurse(self, make_cfg):
        n = 20000
        blocks = [(f"bb{i}", 1, 0, [f"bb{i + 1}"]) for i in range(n - 1)]
        blocks.append((f"bb{n - 1}", 1, 0, []))
        cfg = make_cfg("deep", blocks)
        assert mccabe_measure(cfg) == 1
        assert longest_path_instruction_count(cfg) == n


class TestLongestPath:

    def test_single_instruction(self, single_block):
        assert longest_path_instruction_count(single_block) == 1

    def test_bigger_path_bigger_instructions(self, make_cfg):
        cfg = make_cfg("test", [
            ("entry", 1, 0, ["bb1", "bb3"]),
            ("bb1", 1, 0, ["bb2"]),
            ("bb2", 1, 0, []),
            ("bb3", 1, 0, []),
        ])
        assert longest_path_instruction_count(cfg) == 3

    def test_smaller_path_bigger_instructions(self, make_cfg):
        cfg = make_cfg("test", [
            ("entry", 1, 0, ["bb1", "bb3"]),
            ("bb1", 1, 0, ["bb2"]),
            ("bb2", 1, 0, []),
            ("bb3", 3, 0, []),
        ])
        assert longest_path_instruction_count(cfg) == 3

    def test_two_paths_with_one_end(self, make_cfg):
        cfg = make_cfg("test", [
            ("entry", 1, 0, ["bb1", "bb3"]),
            ("bb1", 1, 0, ["bb2"]),
            ("bb2", 1, 0, ["bb3"]),
            ("bb3", 3, 0, []),
        ])
        assert longest_path_instruction_count(cfg) == 6
        assert longest_path_weight(cfg) == (4, 6)

    def test_depth_beats_instructions(self, make_cfg):
        cfg = make_cfg("test", [
            ("entry", 1, 0, ["fat", "thin1"]),
            ("fat", 100, 0, []),
            ("thin1", 1, 0, ["thin2"]),
            ("thin2", 1, 0, []),
        ])
        assert longest_path_instruction_count(cfg) == 3

    def test_equal_depth_prefers_more_instructions(self, make_cfg):
        cfg = make_cfg("test", [
            ("entry", 1, 0, ["a", "b"]),
            ("a", 5, 0, []),
            ("b", 2, 0, []),
        ])
        assert longest_path_instruction_count(cfg) == 6

    def test_diamond(self, diamond):
        assert longest_path_weight(diamond) == (3, 6)

    def test_back_edge_is_fatal(self, simple_loop):
        with pytest.raises(MalformedGraphError) as info:
            longest_path_instruction_count(simple_loop)
        assert info.value.metric == "longest_path"

    def test_back_edge_ignored(self, simple_loop):
        # entry -> header -> body (back edge dropped): 1 + 2 + 3
        assert longest_path_instruction_count(simple_loop,
                                              on_back_edge="ignore") == 6

    def test_empty_graph_raises(self):
        with pytest.raises(EmptyGraphError):
            longest_path_instruction_count(CFG("empty"))


class TestLoopComplexityScore:

    def test_no_loops(self):
        assert loop_complexity_score(LoopForest()) == 0.0

    def test_single_loop(self):
        assert loop_complexity_score(LoopForest([Loop(header="h")])) == 1.0

    def test_four_level_nest(self):
        inner = Loop(header="l4")
        nest = Loop(header="l1", sub_loops=[
            Loop(header="l2", sub_loops=[Loop(header="l3", sub_loops=[inner])])])
        assert inner.depth == 4
        assert loop_complexity_score(LoopForest([nest])) == pytest.approx(4.0)

    def test_geometric_mean_of_leaves(self):
        deep = Loop(header="b", sub_loops=[
            Loop(header="c", sub_loops=[Loop(header="d", sub_loops=[Loop(header="e")])])])
        forest = LoopForest([Loop(header="a"), deep])
        assert loop_complexity_score(forest) == pytest.approx(2.0)

    def test_inner_loops_contribute_through_leaves(self):
        outer = Loop(header="o", sub_loops=[Loop(header="x"), Loop(header="y")])
        assert loop_complexity_score(LoopForest([outer])) == pytest.approx(2.0)


class TestMemoTable:

    def test_states(self, single_block):
        block = single_block.entry
        memo = MemoTable("mccabe")
        assert memo.state(block) is NodeState.UNVISITED
        memo.begin(block)
        assert memo.state(block) is NodeState.IN_PROGRESS
        memo.finalize(block, 0)
        assert memo.state(block) is NodeState.FINALIZED
        assert memo.value(block) == 0


class TestComplexityAnalyzer:

    def test_run_all_metrics(self, four_level_nest):
        cfg_ = AnalysisConfig(on_back_edge="ignore")
        result = ComplexityAnalyzer(four_level_nest, cfg_).run()
        assert result.function == "test"
        assert result.blocks == 10
        assert result.instructions == 32
        assert result.loop_score == pytest.approx(4.0)
        assert result.mccabe is not None
        assert result.longest_path is not None

    def test_selected_metrics_only(self, if_else):
        config = AnalysisConfig(metrics=("blocks", "mccabe"))
        result = ComplexityAnalyzer(if_else, config).run()
        assert result.blocks == 3
        assert result.mccabe == 2
        assert result.instructions is None
        assert result.longest_path is None
        assert result.loop_score is None

    def test_explicit_forest_wins(self, if_else):
        forest = LoopForest([Loop(header="x", sub_loops=[Loop(header="y")])])
        analyzer = ComplexityAnalyzer(if_else, loops=forest)
        assert analyzer.loop_complexity_score() == pytest.approx(2.0)

    def test_loop_derivation_disabled(self, four_level_nest):
        analyzer = ComplexityAnalyzer(four_level_nest,
                                      AnalysisConfig(loop_score=False))
        assert analyzer.loop_complexity_score() is None

    def test_loop_free_graph_scores_zero(self, diamond):
        assert ComplexityAnalyzer(diamond).loop_complexity_score() == 0.0

    def test_empty_graph(self):
        analyzer = ComplexityAnalyzer(CFG("empty"))
        assert analyzer.block_count() == 0
        assert analyzer.instruction_count() == 0
        assert analyzer.loop_complexity_score() == 0.0
        with pytest.raises(EmptyGraphError):
            analyzer.mccabe_measure()

    def test_idempotent(self, diamond):
        analyzer = ComplexityAnalyzer(diamond)
        first = analyzer.run()
        second = analyzer.run()
        assert first == second
        assert mccabe_measure(diamond) == mccabe_measure(diamond)

    def test_to_dict(self, two_sequential):
        d = ComplexityAnalyzer(two_sequential).run().to_dict()
        assert d == {
            "function": "test",
            "blocks": 2,
            "instructions": 2,
            "mccabe": 1,
            "longest_path": 2,
            "loop_score": 0.0,
        }
