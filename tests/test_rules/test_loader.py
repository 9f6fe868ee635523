"""Tests for YAML rule loading."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from src.core.config import RulesConfig
from src.core.types import Severity
from src.rules.catalog import DEFAULT_RULES
from src.rules.exceptions import RuleConfigError, RuleError
from src.rules.loader import build_rules, load_rules
from src.stream.window import WindowKind

_RULE = {
    "name": "api_latency",
    "match": [
        {"field": "service", "value": "api_latency"},
        {"field": "host", "value": "^api-", "kind": "regex"},
    ],
    "event_name": "ApiLatency",
    "group": "Web",
    "window": {"kind": "sliding", "span_secs": 60, "fold": "mean", "group_by": ["cluster"]},
    "debounce": 3,
    "ladder": {
        "comparison": "gt",
        "rungs": [{"bound": 250, "severity": "major", "message": "API is slow"}],
        "otherwise": {"severity": "normal", "message": "API is OK"},
    },
}


def _write(tmp_path: Path, data: object, name: str = "rules.yaml") -> Path:
    path = tmp_path / name
    path.write_text(yaml.dump(data))
    return path


class TestLoadRules:
    def test_load_valid_file(self, tmp_path: Path) -> None:
        rules = load_rules(_write(tmp_path, {"rules": [_RULE]}))
        assert len(rules) == 1
        rule = rules[0]
        assert rule.name == "api_latency"
        assert rule.debounce == 3
        assert rule.window is not None
        assert rule.window.kind == WindowKind.SLIDING
        assert rule.ladder.rungs[0].severity == Severity.MAJOR

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_rules(path) == []

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(RuleConfigError):
            load_rules(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("rules: [unclosed")
        with pytest.raises(RuleConfigError):
            load_rules(path)

    def test_top_level_list_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(RuleConfigError):
            load_rules(_write(tmp_path, [_RULE]))

    def test_validation_error(self, tmp_path: Path) -> None:
        bad = {**_RULE, "debounce": 0}
        with pytest.raises(RuleConfigError):
            load_rules(_write(tmp_path, {"rules": [bad]}))

    def test_duplicate_names(self, tmp_path: Path) -> None:
        with pytest.raises(RuleConfigError):
            load_rules(_write(tmp_path, {"rules": [_RULE, _RULE]}))

    def test_config_error_is_rule_error(self) -> None:
        assert issubclass(RuleConfigError, RuleError)


class TestBuildRules:
    def test_defaults_only(self) -> None:
        rules = build_rules(RulesConfig())
        assert [r.name for r in rules] == [r.name for r in DEFAULT_RULES]

    def test_defaults_plus_file(self, tmp_path: Path) -> None:
        path = _write(tmp_path, {"rules": [_RULE]})
        rules = build_rules(RulesConfig(path=str(path)))
        assert len(rules) == len(DEFAULT_RULES) + 1
        assert rules[-1].name == "api_latency"

    def test_file_only(self, tmp_path: Path) -> None:
        path = _write(tmp_path, {"rules": [_RULE]})
        rules = build_rules(RulesConfig(path=str(path), include_defaults=False))
        assert [r.name for r in rules] == ["api_latency"]

    def test_name_clash_with_default(self, tmp_path: Path) -> None:
        clash = {**_RULE, "name": "fs_util"}
        path = _write(tmp_path, {"rules": [clash]})
        with pytest.raises(RuleConfigError):
            build_rules(RulesConfig(path=str(path)))


class TestExampleFile:
    def test_shipped_example_loads(self) -> None:
        path = Path(__file__).resolve().parents[2] / "config" / "rules.example.yaml"
        rules = load_rules(path)
        assert [r.name for r in rules] == ["api_latency"]
        assert rules[0].window is not None
        assert rules[0].window.resource_from_group is True
