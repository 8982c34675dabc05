"""
cfgcomplexity — Static Complexity Metrics over Control Flow Graphs
==================================================================

Structural complexity of compiled function bodies, computed from their
control flow graphs: block count, instruction count, McCabe measure,
instructions along the longest path, and a loop-nesting score.

Core modules
------------
ctrlflow_graph
    BasicBlock / CFGEdge / CFG data model.
loop_forest
    Loop forest, dominators and natural-loop detection.
complexity
    The metrics and the ``ComplexityAnalyzer`` façade.
config
    ``AnalysisConfig`` and JSON config loading.
graph_io
    JSON and S-expression graph descriptions.
report
    Per-function reports and renderers.
errors
    Exception hierarchy.

Quick start
-----------
>>> from cfgcomplexity import CFG, mccabe_measure
>>> cfg = CFG("test")
>>> entry = cfg.add_block("entry", instruction_count=1)
>>> exit_ = cfg.add_block("bb1", instruction_count=1)
>>> _ = cfg.add_edge(entry, exit_)
>>> mccabe_measure(cfg)
1
"""

from __future__ import annotations

import importlib
import logging
import sys
from typing import List

# ---------------------------------------------------------------------------
# Package metadata
# ---------------------------------------------------------------------------

__version__ = "0.1.0"
__license__ = "MIT"
__all__: List[str] = []          # populated below

_log = logging.getLogger(__name__)
_log.addHandler(logging.NullHandler())

# ---------------------------------------------------------------------------
# Internal registry: (module_name, list_of_names_to_re-export)
# ---------------------------------------------------------------------------

_CORE_MODULES = {
    "errors": [
        "ComplexityError",
        "MalformedGraphError",
        "EmptyGraphError",
        "GraphFormatError",
        "ConfigError",
    ],
    "ctrlflow_graph": [
        "EdgeKind",
        "BasicBlock",
        "CFGEdge",
        "CFG",
        "cfg_summary",
    ],
    "loop_forest": [
        "Loop",
        "LoopForest",
        "DominatorTree",
        "NaturalLoopDetector",
        "build_loop_forest",
    ],
    "config": [
        "AnalysisConfig",
        "ALL_METRICS",
        "load_config",
    ],
    "complexity": [
        "ComplexityAnalyzer",
        "ComplexityResult",
        "block_count",
        "instruction_count",
        "mccabe_measure",
        "longest_path_instruction_count",
        "loop_complexity_score",
    ],
    "graph_io": [
        "load_json",
        "load_sexp",
        "load_path",
        "dump_json",
        "dump_sexp",
    ],
    "report": [
        "FunctionReport",
        "analyze_functions",
        "render",
    ],
}


def _import_names(module_rel_name: str, names: List[str]) -> None:
    """Import *names* from a submodule and bind them in the package namespace."""
    fq_name = f"{__name__}.{module_rel_name}"
    try:
        mod = importlib.import_module(fq_name)
    except ImportError as exc:
        raise ImportError(
            f"cfgcomplexity: required submodule '{module_rel_name}' "
            f"failed to import: {exc}"
        ) from exc

    current_module = sys.modules[__name__]
    for name in names:
        if not hasattr(mod, name):
            raise AttributeError(
                f"cfgcomplexity.{module_rel_name} does not export '{name}'")
        setattr(current_module, name, getattr(mod, name))
        __all__.append(name)

    # cfgcomplexity.complexity.mccabe_measure works as well as
    # cfgcomplexity.mccabe_measure
    setattr(current_module, module_rel_name, mod)
    if module_rel_name not in __all__:
        __all__.append(module_rel_name)


for _mod, _names in _CORE_MODULES.items():
    _import_names(_mod, _names)

del _mod, _names


def list_submodules() -> List[str]:
    """Return the names of all re-exported submodules."""
    return sorted(_CORE_MODULES)
