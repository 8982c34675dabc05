# tests/test_config.py
"""
Tests for AnalysisConfig validation, merging and JSON loading.
"""

import json

import pytest

from cfgcomplexity.config import ALL_METRICS, AnalysisConfig, load_config
from cfgcomplexity.errors import ConfigError


class TestAnalysisConfig:

    def test_defaults_are_valid(self):
        config = AnalysisConfig()
        assert config.validate() == []
        assert config.metrics == ALL_METRICS
        assert config.on_back_edge == "error"
        assert all(config.wants(m) for m in ALL_METRICS)

    def test_validate_collects_problems(self):
        config = AnalysisConfig(metrics=("mccabe", "halstead"),
                                on_back_edge="skip", output_format="xml")
        problems = config.validate()
        assert len(problems) == 3
        assert "halstead" in problems[0]

    def test_empty_metrics(self):
        with pytest.raises(ConfigError, match="at least one metric"):
            AnalysisConfig(metrics=()).check()

    def test_merged_ignores_none(self):
        base = AnalysisConfig(output_format="json")
        merged = base.merged(metrics=["blocks"], on_back_edge=None, output_format=None)
        assert merged.metrics == ("blocks",)
        assert merged.output_format == "json"
        assert base.metrics == ALL_METRICS

    def test_merged_validates(self):
        with pytest.raises(ConfigError):
            AnalysisConfig().merged(on_back_edge="sometimes")

    def test_to_dict_from_mapping(self):
        config = AnalysisConfig(metrics=("mccabe",), loop_score=False)
        assert AnalysisConfig.from_mapping(config.to_dict()) == config


class TestFromMapping:

    def test_unknown_key(self):
        with pytest.raises(ConfigError) as info:
            AnalysisConfig.from_mapping({"metric": ["mccabe"]})
        assert info.value.key == "metric"

    def test_metrics_must_be_list(self):
        with pytest.raises(ConfigError, match="list of names") as info:
            AnalysisConfig.from_mapping({"metrics": "mccabe"})
        assert info.value.value == "mccabe"

    def test_loop_score_must_be_bool(self):
        with pytest.raises(ConfigError, match="true or false"):
            AnalysisConfig.from_mapping({"loop_score": "no"})

    def test_partial(self):
        config = AnalysisConfig.from_mapping({"on_back_edge": "ignore"})
        assert config.on_back_edge == "ignore"
        assert config.metrics == ALL_METRICS


class TestLoadConfig:

    def test_valid_file(self, tmp_path):
        path = tmp_path / "complexity.json"
        path.write_text(json.dumps({"metrics": ["mccabe", "longest_path"],
                                    "output_format": "sexp"}))
        config = load_config(str(path))
        assert config.metrics == ("mccabe", "longest_path")
        assert config.output_format == "sexp"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="cannot read"):
            load_config(str(tmp_path / "absent.json"))

    def test_bad_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{metrics:")
        with pytest.raises(ConfigError, match="not valid JSON"):
            load_config(str(path))

    def test_not_an_object(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[]")
        with pytest.raises(ConfigError, match="JSON object"):
            load_config(str(path))
