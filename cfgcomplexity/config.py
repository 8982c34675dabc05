"""Analysis configuration."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Mapping, Tuple

from .errors import ConfigError

METRIC_BLOCKS = "blocks"
METRIC_INSTRUCTIONS = "instructions"
METRIC_MCCABE = "mccabe"
METRIC_LONGEST_PATH = "longest_path"
METRIC_LOOP_SCORE = "loop_score"

ALL_METRICS: Tuple[str, ...] = (
    METRIC_BLOCKS,
    METRIC_INSTRUCTIONS,
    METRIC_MCCABE,
    METRIC_LONGEST_PATH,
    METRIC_LOOP_SCORE,
)

BACK_EDGE_ERROR = "error"
BACK_EDGE_IGNORE = "ignore"
BACK_EDGE_POLICIES = (BACK_EDGE_ERROR, BACK_EDGE_IGNORE)

OUTPUT_FORMATS = ("text", "json", "sexp")


@dataclass
class AnalysisConfig:
    """Tuning knobs for a complexity analysis run."""
    metrics: Tuple[str, ...] = field(default=ALL_METRICS)
    on_back_edge: str = BACK_EDGE_ERROR     # "error" | "ignore"
    loop_score: bool = True                 # derive loops when none supplied
    output_format: str = "text"             # "text" | "json" | "sexp"

    def validate(self) -> List[str]:
        """Return a list of validation problems (empty if valid)."""
        problems: List[str] = []
        unknown = [m for m in self.metrics if m not in ALL_METRICS]
        if unknown:
            problems.append(
                f"unknown metric(s) {', '.join(unknown)}; "
                f"expected any of {', '.join(ALL_METRICS)}")
        if not self.metrics:
            problems.append("at least one metric must be selected")
        if self.on_back_edge not in BACK_EDGE_POLICIES:
            problems.append(
                f"on_back_edge must be one of {', '.join(BACK_EDGE_POLICIES)}")
        if self.output_format not in OUTPUT_FORMATS:
            problems.append(
                f"output_format must be one of {', '.join(OUTPUT_FORMATS)}")
        return problems

    def check(self) -> "AnalysisConfig":
        """Raise :class:`ConfigError` on the first validation problem."""
        problems = self.validate()
        if problems:
            raise ConfigError(problems[0])
        return self

    def wants(self, metric: str) -> bool:
        return metric in self.metrics

    def merged(self, **overrides: Any) -> "AnalysisConfig":
        """Copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        if "metrics" in changes:
            changes["metrics"] = tuple(changes["metrics"])
        return replace(self, **changes).check()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metrics": list(self.metrics),
            "on_back_edge": self.on_back_edge,
            "loop_score": self.loop_score,
            "output_format": self.output_format,
        }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "AnalysisConfig":
        known = {f.name for f in fields(cls)}
        extra = sorted(set(data) - known)
        if extra:
            raise ConfigError(f"unknown configuration key {extra[0]!r}",
                              key=extra[0])
        kwargs: Dict[str, Any] = dict(data)
        if "metrics" in kwargs:
            metrics = kwargs["metrics"]
            if isinstance(metrics, str) or not isinstance(metrics, (list, tuple)):
                raise ConfigError("metrics must be a list of names",
                                  key="metrics", value=metrics)
            kwargs["metrics"] = tuple(metrics)
        if "loop_score" in kwargs and not isinstance(kwargs["loop_score"], bool):
            raise ConfigError("loop_score must be true or false",
                              key="loop_score", value=kwargs["loop_score"])
        return cls(**kwargs).check()


def load_config(path: str) -> AnalysisConfig:
    """Read an :class:`AnalysisConfig` from a JSON file."""
    path = os.path.expanduser(path)
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except OSError as exc:
        raise ConfigError(f"cannot read config file {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"config file {path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must hold a JSON object")
    return AnalysisConfig.from_mapping(data)
