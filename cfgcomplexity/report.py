"""Per-function reports and their text / JSON / S-expression renderings."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence

import sexpdata

from .complexity import ComplexityAnalyzer, ComplexityResult
from .config import ALL_METRICS, AnalysisConfig
from .ctrlflow_graph import CFG
from .errors import ComplexityError

_log = logging.getLogger(__name__)


@dataclass
class FunctionReport:
    """Outcome of analysing one function: either a result or an error."""
    source: str
    function: str
    result: Optional[ComplexityResult] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"source": self.source, "function": self.function}
        if self.result is not None:
            metrics = self.result.to_dict()
            metrics.pop("function")
            d["metrics"] = {k: v for k, v in metrics.items() if v is not None}
        if self.error is not None:
            d["error"] = self.error
        return d


def analyze_functions(
    cfgs: Iterable[CFG],
    config: Optional[AnalysisConfig] = None,
    source: str = "<memory>",
) -> List[FunctionReport]:
    """Analyse every CFG; a failing function does not stop the others."""
    reports: List[FunctionReport] = []
    for cfg in cfgs:
        try:
            result = ComplexityAnalyzer(cfg, config).run()
        except ComplexityError as exc:
            _log.error("%s: %s: %s", source, cfg.name, exc)
            reports.append(FunctionReport(source, cfg.name, error=str(exc)))
            continue
        _log.info("%s: %s analysed", source, cfg.name)
        reports.append(FunctionReport(source, cfg.name, result=result))
    return reports


# ---------------------------------------------------------------------------
# Renderers
# ---------------------------------------------------------------------------

def _fmt(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, float):
        return f"{value:.3f}"
    return str(value)


def render_text(reports: Sequence[FunctionReport],
                metrics: Sequence[str] = ALL_METRICS) -> str:
    header = ["source", "function", *metrics]
    rows: List[List[str]] = [header]
    for r in reports:
        if r.result is None:
            rows.append([r.source, r.function] + ["!"] * len(metrics))
            continue
        values = r.result.to_dict()
        rows.append([r.source, r.function] + [_fmt(values[m]) for m in metrics])
    widths = [max(len(row[i]) for row in rows) for i in range(len(header))]
    lines = ["  ".join(cell.ljust(w) for cell, w in zip(row, widths)).rstrip()
             for row in rows]
    for r in reports:
        if r.error is not None:
            lines.append(f"error: {r.source}: {r.function}: {r.error}")
    return "\n".join(lines)


def render_json(reports: Sequence[FunctionReport], indent: Optional[int] = 2) -> str:
    return json.dumps({"reports": [r.to_dict() for r in reports]}, indent=indent)


def render_sexp(reports: Sequence[FunctionReport]) -> str:
    Sym = sexpdata.Symbol
    out: List[str] = []
    for r in reports:
        form: List[Any] = [Sym("report"), [Sym("source"), r.source],
                           [Sym("function"), r.function]]
        if r.result is not None:
            for key, value in r.result.to_dict().items():
                if key != "function" and value is not None:
                    form.append([Sym(key), value])
        if r.error is not None:
            form.append([Sym("error"), r.error])
        out.append(sexpdata.dumps(form))
    return "\n".join(out)


RENDERERS = {
    "text": render_text,
    "json": render_json,
    "sexp": render_sexp,
}


def render(reports: Sequence[FunctionReport], fmt: str,
           metrics: Sequence[str] = ALL_METRICS) -> str:
    if fmt == "text":
        return render_text(reports, metrics)
    return RENDERERS[fmt](reports)
