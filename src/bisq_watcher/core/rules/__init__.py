"""Rule catalog, override directives and per-sink resolution."""

from __future__ import annotations

from .catalog import CatalogError, default_rules, load_catalog, system_rules
from .resolver import (
    EffectiveRuleMap,
    MatchingRule,
    apply_directive,
    matching_rules,
    resolve_rule_map,
)
from .schema import OverrideDirective, RuleSpec

__all__ = [
    "CatalogError",
    "EffectiveRuleMap",
    "MatchingRule",
    "OverrideDirective",
    "RuleSpec",
    "apply_directive",
    "default_rules",
    "load_catalog",
    "matching_rules",
    "resolve_rule_map",
    "system_rules",
]
