"""Merge the default rule catalog with layered override directives.

Resolution order for one sink:

1. seed from the catalog (each rule keeps its own ``is_active``)
2. apply watcher-scope directives in order
3. apply sink-scope directives in order, so the sink wins on conflict
4. ``activation: inactive`` only disables; the directive's other fields are
   ignored
5. any other directive activates the rule and overwrites every field it
   provides
6. drop inactive rules, rules not meant for Telegram on push sinks, and
   rules whose severity override is below the sink threshold
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, replace

from ..models import Rule, Severity
from .schema import OverrideDirective

logger = logging.getLogger(__name__)

EffectiveRuleMap = dict[str, Rule]


def apply_directive(rule: Rule, directive: OverrideDirective) -> Rule:
    """Return ``rule`` with one directive applied."""
    if directive.deactivates:
        return replace(rule, is_active=False)

    changes: dict[str, object] = {"is_active": True}
    provided = directive.model_fields_set
    if "message" in provided and directive.message is not None:
        changes["message"] = directive.message
    if "level" in provided:
        changes["level"] = Severity(directive.level) if directive.level else None
    if "send_to_telegram" in provided and directive.send_to_telegram is not None:
        changes["send_to_telegram"] = directive.send_to_telegram
    if "logger" in provided:
        changes["logger"] = directive.logger
    if "thread" in provided:
        changes["thread"] = directive.thread
    return replace(rule, **changes)


def apply_layer(
    rules: Mapping[str, Rule],
    directives: Iterable[OverrideDirective],
    *,
    scope: str,
) -> dict[str, Rule]:
    """Apply one scope's directives on top of ``rules``."""
    out = dict(rules)
    for directive in directives:
        rule = out.get(directive.event_name)
        if rule is None:
            logger.warning(
                "Ignoring %s override for unknown event %r", scope, directive.event_name
            )
            continue
        out[directive.event_name] = apply_directive(rule, directive)
    return out


def resolve_rule_map(
    catalog: Sequence[Rule],
    *,
    watcher_directives: Iterable[OverrideDirective] = (),
    sink_directives: Iterable[OverrideDirective] = (),
    threshold: Severity = Severity.DEBUG,
    push_sink: bool = False,
) -> EffectiveRuleMap:
    """Build a sink's effective rule map (event name -> active rule)."""
    seeded = {rule.event_name: rule for rule in catalog}
    layered = apply_layer(seeded, watcher_directives, scope="watcher")
    layered = apply_layer(layered, sink_directives, scope="sink")

    resolved: EffectiveRuleMap = {}
    for name, rule in layered.items():
        if not rule.is_active:
            continue
        if push_sink and not rule.send_to_telegram:
            continue
        if rule.level is not None and not rule.level.admitted_by(threshold):
            continue
        resolved[name] = rule
    return resolved


@dataclass(frozen=True, slots=True)
class MatchingRule:
    """A rule the tailer evaluates, with every origin filter a sink needs."""

    event_name: str
    pattern: str
    origins: tuple[tuple[str | None, str | None], ...]

    def admits_origin(self, logger: str | None, thread: str | None) -> bool:
        for want_logger, want_thread in self.origins:
            if want_logger and want_logger != logger:
                continue
            if want_thread and want_thread != thread:
                continue
            return True
        return False


def matching_rules(
    catalog: Sequence[Rule],
    rule_maps: Iterable[EffectiveRuleMap],
) -> list[MatchingRule]:
    """Union of the rules active in any sink, in catalog order.

    Sink directives may narrow or change a rule's origin filters, so every
    distinct (logger, thread) pair is kept; the dispatcher applies the exact
    filter of each sink.
    """
    origins: dict[str, list[tuple[str | None, str | None]]] = {}
    for rule_map in rule_maps:
        for name, rule in rule_map.items():
            pairs = origins.setdefault(name, [])
            pair = (rule.logger, rule.thread)
            if pair not in pairs:
                pairs.append(pair)

    return [
        MatchingRule(
            event_name=rule.event_name,
            pattern=rule.pattern,
            origins=tuple(origins[rule.event_name]),
        )
        for rule in catalog
        if rule.event_name in origins
    ]
