"""Compile rule templates with positional placeholders into regex matchers.

A template such as ``id={0:uptoHyphen}, state={1}`` is literal text with
placeholders. The compiled matcher finds the literal text anywhere inside a
record (which may carry a multi-line stack trace) and captures the
placeholder values:

    >>> compiled = compile_template("id={0:uptoHyphen}, state={1}")
    >>> compiled.match("We got a new id=o9OKUJa-123456, state=active").groups
    ('o9OKUJa', 'active')

Capture rules:
  - ``uptoHyphen``: up to (excluding) the next hyphen; an optional ``-suffix``
    segment up to the next comma is consumed but not captured
  - the placeholder that ends the template: greedy, to the end of the line
  - any other placeholder: lazy, so later literal text still anchors
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(r"\{(\d+)(?::(\w+))?\}")

_ANY = r"[\s\S]*"
_UPTO_HYPHEN = r"[^\-]+"
_UPTO_HYPHEN_SUFFIX = r"(?:-[^,]+)?"
_GREEDY = r".+"
_LAZY = r".+?"

SPECIFIERS = frozenset({"uptoHyphen"})


@dataclass(frozen=True, slots=True)
class PatternMatch:
    """Result of a successful match.

    ``groups[n]`` is the text captured by placeholder ``{n}``; indices the
    template never uses are empty strings.
    """

    whole: str
    groups: tuple[str, ...]

    @property
    def captured_groups(self) -> tuple[str, ...]:
        """Whole match followed by the placeholder captures."""
        return (self.whole, *self.groups)


@dataclass(frozen=True, slots=True)
class PatternCompileError:
    """A template that could not be turned into a matcher."""

    template: str
    reason: str

    def __str__(self) -> str:
        return f"cannot compile pattern {self.template!r}: {self.reason}"


@dataclass(frozen=True, slots=True)
class CompiledPattern:
    """Anchored matcher for one template."""

    template: str
    regex: re.Pattern[str]
    indices: tuple[int, ...]  # placeholder indices in order of first use

    def match(self, text: str) -> PatternMatch | None:
        m = self.regex.match(text)
        if m is None:
            return None

        size = max(self.indices) + 1 if self.indices else 0
        groups = [""] * size
        for index in self.indices:
            groups[index] = m.group(f"p{index}") or ""
        return PatternMatch(whole=m.group(0), groups=tuple(groups))


def compile_template(template: str) -> CompiledPattern | PatternCompileError:
    """Compile a template; return a structured error instead of raising."""
    parts: list[str] = [_ANY]
    indices: list[int] = []
    placeholders = list(_PLACEHOLDER_RE.finditer(template))
    pos = 0

    for i, m in enumerate(placeholders):
        parts.append(re.escape(template[pos : m.start()]))
        index = int(m.group(1))
        specifier = m.group(2)

        if specifier is not None and specifier not in SPECIFIERS:
            return PatternCompileError(template, f"unknown specifier {specifier!r}")

        if index in indices:
            # The same placeholder twice must capture the same text twice.
            parts.append(f"(?P=p{index})")
        elif specifier == "uptoHyphen":
            parts.append(f"(?P<p{index}>{_UPTO_HYPHEN}){_UPTO_HYPHEN_SUFFIX}")
        elif i == len(placeholders) - 1 and m.end() == len(template):
            parts.append(f"(?P<p{index}>{_GREEDY})")
        else:
            parts.append(f"(?P<p{index}>{_LAZY})")

        if index not in indices:
            indices.append(index)
        pos = m.end()

    parts.append(re.escape(template[pos:]))
    parts.append(_ANY)

    try:
        regex = re.compile("".join(parts))
    except re.error as exc:
        return PatternCompileError(template, str(exc))

    return CompiledPattern(template=template, regex=regex, indices=tuple(indices))


class PatternCompiler:
    """Compile each distinct template once and keep the result."""

    def __init__(self) -> None:
        self._cache: dict[str, CompiledPattern | PatternCompileError] = {}

    def compile(self, template: str) -> CompiledPattern | PatternCompileError:
        result = self._cache.get(template)
        if result is None:
            result = compile_template(template)
            if isinstance(result, PatternCompileError):
                logger.warning("%s", result)
            self._cache[template] = result
        return result

    def compile_all(self, templates: Iterable[str]) -> list[PatternCompileError]:
        """Compile every template; return the errors found."""
        errors: list[PatternCompileError] = []
        for template in templates:
            result = self.compile(template)
            if isinstance(result, PatternCompileError) and result not in errors:
                errors.append(result)
        return errors

    def __len__(self) -> int:
        return len(self._cache)
