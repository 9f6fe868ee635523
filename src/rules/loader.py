"""Load rule descriptors from YAML."""

from __future__ import annotations

from pathlib import Path

import structlog
import yaml
from pydantic import ValidationError

from src.core.config import RulesConfig
from src.rules.catalog import default_rules
from src.rules.exceptions import RuleConfigError
from src.rules.types import RuleDescriptor, RuleSet

logger = structlog.get_logger(__name__)


def load_rules(path: str | Path) -> list[RuleDescriptor]:
    """Parse a YAML rule file of the form ``{rules: [...]}``.

    Raises:
        RuleConfigError: the file is missing, is not valid YAML, or a rule
            fails validation.
    """
    rule_path = Path(path)
    try:
        with open(rule_path) as f:
            raw = yaml.safe_load(f)
    except OSError as exc:
        raise RuleConfigError(f"cannot read rule file {rule_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise RuleConfigError(f"invalid YAML in {rule_path}: {exc}") from exc

    if raw is None:
        return []
    if not isinstance(raw, dict):
        raise RuleConfigError(f"{rule_path}: top level must be a mapping with a 'rules' list")

    try:
        rule_set = RuleSet(**raw)
    except ValidationError as exc:
        raise RuleConfigError(f"{rule_path}: {exc}") from exc

    _check_unique(rule_set.rules, str(rule_path))
    return rule_set.rules


def build_rules(config: RulesConfig) -> list[RuleDescriptor]:
    """Built-in rules (unless disabled) followed by rules from ``config.path``."""
    rules: list[RuleDescriptor] = default_rules() if config.include_defaults else []
    if config.path:
        loaded = load_rules(config.path)
        logger.info("rules_loaded", path=config.path, count=len(loaded))
        rules.extend(loaded)
    _check_unique(rules, "rule set")
    return rules


def _check_unique(rules: list[RuleDescriptor], where: str) -> None:
    seen: set[str] = set()
    for rule in rules:
        if rule.name in seen:
            raise RuleConfigError(f"{where}: duplicate rule name {rule.name!r}")
        seen.add(rule.name)
